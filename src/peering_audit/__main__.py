from peering_audit.cli import run_entrypoint

run_entrypoint()
