from __future__ import annotations

import json

import pytest
from helpers import SUB_A, SUB_B, FakeDirectory, make_link, make_vnet

from peering_audit import cli
from peering_audit.audit.walker import EnumerationFailure, WalkResult, WalkTarget
from peering_audit.config import Settings
from peering_audit.directory.azure import AzureResourceDirectory
from peering_audit.directory.errors import CredentialBootstrapError
from peering_audit.domain.models import (
    AccountContext,
    ValidationOutcome,
    ValidationRecord,
    ValidationStatus,
)


def _result() -> WalkResult:
    account = AccountContext(account_id=SUB_A, display_name="hub", enabled=True)
    link = make_link("to-spoke", SUB_B, "rg-spoke", "vnet-spoke", allow_gateway_transit=True)
    container = make_vnet(SUB_A, "rg-hub", "vnet-hub", peerings=[link])
    record = ValidationRecord.build(
        account,
        container,
        link,
        ValidationOutcome(ValidationStatus.NOT_FOUND, "VNet vnet-spoke not found"),
    )
    return WalkResult(
        records=[record],
        failures=[EnumerationFailure(SUB_B, "list_containers", "Service unavailable")],
        accounts_scanned=2,
        containers_scanned=1,
    )


@pytest.fixture
def fake_run(monkeypatch: pytest.MonkeyPatch, directory: FakeDirectory) -> FakeDirectory:
    monkeypatch.setattr(cli, "load_settings", lambda: Settings())
    monkeypatch.setattr(cli, "configure_logging", lambda level_override=None: None)
    monkeypatch.setattr(AzureResourceDirectory, "from_settings", lambda settings: directory)
    directory.add_account(SUB_A, "hub")
    directory.add_container(make_vnet(SUB_B, "rg-spoke", "vnet-spoke"))
    directory.add_container(
        make_vnet(
            SUB_A, "rg-hub", "vnet-hub", peerings=[make_link("p", SUB_B, "rg-spoke", "vnet-spoke")]
        )
    )
    return directory


def test_target_requires_all_three_options() -> None:
    parser = cli.build_parser()
    args = parser.parse_args(["--subscription", SUB_A, "--vnet", "hub"])

    with pytest.raises(SystemExit):
        cli.target_from_args(args, parser)


def test_target_from_args() -> None:
    parser = cli.build_parser()
    args = parser.parse_args(
        ["--subscription", SUB_A, "--resource-group", "rg", "--vnet", "hub"]
    )

    assert cli.target_from_args(args, parser) == WalkTarget(SUB_A, "rg", "hub")


def test_no_target_options_means_exhaustive() -> None:
    parser = cli.build_parser()

    assert cli.target_from_args(parser.parse_args([]), parser) is None


def test_render_text_lists_attention_items() -> None:
    text = cli.render_text(_result())

    assert "NotFound" in text
    assert "Scanned 2 subscriptions, 1 VNets, 1 peerings (1 cross-subscription)" in text
    assert "Gateway transit dependencies" in text
    assert "Stale link candidates" in text
    assert f"{SUB_B} [list_containers]: Service unavailable" in text


def test_render_json_without_records() -> None:
    payload = json.loads(cli.render_json(_result(), include_records=False))

    assert payload["summary"]["counts"]["NotFound"] == 1
    assert payload["failures"][0]["stage"] == "list_containers"
    assert "records" not in payload


def test_write_records_emits_json_lines(tmp_path) -> None:
    path = tmp_path / "records.jsonl"
    with path.open("w", encoding="utf-8") as handle:
        cli.write_records(_result(), handle)

    rows = [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]
    assert [row["ValidationStatus"] for row in rows] == ["NotFound"]


def test_main_exhaustive_run(fake_run: FakeDirectory, capsys) -> None:
    assert cli.main(["--format", "json"]) == cli.EXIT_OK

    payload = json.loads(capsys.readouterr().out)
    assert payload["summary"]["counts"]["Validated"] == 1
    assert payload["records"][0]["RemoteVNet"] == "vnet-spoke"


def test_main_targeted_run(fake_run: FakeDirectory, capsys) -> None:
    code = cli.main(["--subscription", SUB_A, "--resource-group", "rg-hub", "--vnet", "vnet-hub"])

    assert code == cli.EXIT_OK
    assert fake_run.calls_named("list_accounts") == []
    assert "Validated" in capsys.readouterr().out


def test_main_writes_output_file(fake_run: FakeDirectory, tmp_path, capsys) -> None:
    output = tmp_path / "out" / "records.jsonl"

    assert cli.main(["--output", str(output)]) == cli.EXIT_OK

    assert len(output.read_text(encoding="utf-8").splitlines()) == 1
    assert "vnet-hub ->" not in capsys.readouterr().out


def test_main_bootstrap_failure_is_fatal(fake_run: FakeDirectory) -> None:
    fake_run.bootstrap_error = CredentialBootstrapError("az login required")

    assert cli.main([]) == cli.EXIT_FATAL


def test_main_invalid_configuration_is_fatal(
    monkeypatch: pytest.MonkeyPatch, capsys
) -> None:
    def broken() -> Settings:
        raise RuntimeError("Invalid configuration: AUDIT_MAX_CONCURRENCY")

    monkeypatch.setattr(cli, "load_settings", broken)

    assert cli.main([]) == cli.EXIT_FATAL
    assert "Invalid configuration" in capsys.readouterr().err
