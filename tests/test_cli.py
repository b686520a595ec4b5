import io
import json
from pathlib import Path

from nginx_auditor import cli, exit_codes
from nginx_auditor.errors import SourceUnavailable

MANIFESTS = Path(__file__).resolve().parents[1] / "manifests"


class FakeApi:
    context = "test-ctx"

    def list_namespaces(self):
        return ["default", "kube-system"]

    def list_namespaced(self, kind, namespace, label_selector=None):
        if kind != "Ingress" or namespace != "default":
            return []
        return [
            {
                "metadata": {
                    "name": "legacy",
                    "namespace": "default",
                    "annotations": {"nginx.ingress.kubernetes.io/server-snippet": "return 200;"},
                },
                "spec": {"ingressClassName": "nginx"},
            }
        ]


def test_cli_scan_repo_generates_reports(tmp_path, capsys):
    exit_code = cli.main(["scan", "repo", "--path", str(MANIFESTS / "vulnerable"), "--output", str(tmp_path)])

    captured = capsys.readouterr()
    assert "Scan Summary" in captured.out
    assert exit_code == exit_codes.POLICY_VIOLATION
    data = json.loads((tmp_path / "report.json").read_text(encoding="utf-8"))
    assert data["summary"]["findingsBySeverity"]["critical"] == 1
    assert data["summary"]["policy"]["passed"] is False
    assert (tmp_path / "report.md").is_file()


def test_cli_passes_on_clean_manifests(tmp_path, capsys):
    exit_code = cli.main(["scan", "repo", "-p", str(MANIFESTS / "safe"), "-o", str(tmp_path), "-f", "json"])

    captured = capsys.readouterr()
    assert "Scan Summary" in captured.out
    assert exit_code == exit_codes.SUCCESS
    assert (tmp_path / "report.json").is_file()
    assert not (tmp_path / "report.md").exists()


def test_cli_config_file_disables_rules(tmp_path, capsys):
    config_path = tmp_path / "auditor.yaml"
    config_path.write_text(
        "rules:\n  disabled: [RISK-SNIPPET-001]\npolicy:\n  failOn: high\n",
        encoding="utf-8",
    )

    exit_code = cli.main(
        ["scan", "repo", "-p", str(MANIFESTS / "vulnerable"), "--config", str(config_path), "-o", str(tmp_path)]
    )

    assert exit_code == exit_codes.SUCCESS
    data = json.loads((tmp_path / "report.json").read_text(encoding="utf-8"))
    assert all(finding["id"] != "RISK-SNIPPET-001" for finding in data["findings"])


def test_cli_fail_on_flag_overrides_config(tmp_path, capsys):
    exit_code = cli.main(
        ["scan", "repo", "-p", str(MANIFESTS / "safe"), "--fail-on", "INFO", "-o", str(tmp_path)]
    )

    assert exit_code == exit_codes.SUCCESS
    data = json.loads((tmp_path / "report.json").read_text(encoding="utf-8"))
    assert data["summary"]["policy"]["failOnSeverity"] == "info"


def test_cli_missing_directory_is_invalid_config(tmp_path, capsys):
    exit_code = cli.main(["scan", "repo", "--path", str(tmp_path / "missing"), "-o", str(tmp_path)])

    captured = capsys.readouterr()
    assert exit_code == exit_codes.INVALID_CONFIG
    assert "Directory not found" in captured.err


def test_cli_missing_config_file(tmp_path, capsys):
    exit_code = cli.main(
        ["scan", "repo", "-p", str(MANIFESTS / "safe"), "--config", str(tmp_path / "nope.yaml")]
    )

    assert exit_code == exit_codes.INVALID_CONFIG
    assert "Configuration error" in capsys.readouterr().err


def test_cli_stdin_scan(tmp_path, capsys, monkeypatch):
    manifest = (MANIFESTS / "vulnerable" / "auth.yaml").read_text(encoding="utf-8")
    monkeypatch.setattr("sys.stdin", io.StringIO(manifest))

    exit_code = cli.main(["scan", "repo", "--stdin", "-o", str(tmp_path), "-f", "json"])

    assert exit_code == exit_codes.SUCCESS
    data = json.loads((tmp_path / "report.json").read_text(encoding="utf-8"))
    assert data["metadata"]["scannedPath"] == "<stdin>"
    assert {finding["id"] for finding in data["findings"]} == {
        "DET-NGINX-CLASS-001",
        "DET-NGINX-ANNOT-PREFIX-001",
        "RISK-AUTH-001",
    }


def test_cli_empty_stdin_is_partial_failure(tmp_path, capsys, monkeypatch):
    monkeypatch.setattr("sys.stdin", io.StringIO(""))

    exit_code = cli.main(["scan", "repo", "--stdin", "-o", str(tmp_path)])

    assert exit_code == exit_codes.PARTIAL_FAILURE
    assert "No input received from stdin" in capsys.readouterr().err
    assert not (tmp_path / "report.json").exists()


def test_cli_scan_cluster(tmp_path, capsys, monkeypatch):
    monkeypatch.setattr(cli, "create_kubernetes_api", lambda kubeconfig, context: FakeApi())

    exit_code = cli.main(
        ["scan", "cluster", "-n", "default,kube-system", "--concurrency", "2", "-o", str(tmp_path), "-f", "json"]
    )

    assert exit_code == exit_codes.POLICY_VIOLATION
    data = json.loads((tmp_path / "report.json").read_text(encoding="utf-8"))
    assert data["metadata"]["mode"] == "cluster"
    assert data["metadata"]["clusterContext"] == "test-ctx"
    assert data["summary"]["findingsBySeverity"]["critical"] == 1


def test_cli_cluster_concurrency_reaches_client(tmp_path, monkeypatch):
    limits = []
    from_api = cli.ClusterResourceReader.from_api

    def recording_from_api(api, options):
        reader = from_api(api, options)
        limits.append(reader.client.max_concurrency)
        return reader

    monkeypatch.setattr(cli, "create_kubernetes_api", lambda kubeconfig, context: FakeApi())
    monkeypatch.setattr(cli.ClusterResourceReader, "from_api", recording_from_api)

    cli.main(["scan", "cluster", "--concurrency", "3", "-o", str(tmp_path), "-f", "json"])

    assert limits == [3]


def test_cli_cluster_auth_failure_is_fatal(capsys, monkeypatch):
    def unavailable(kubeconfig, context):
        raise SourceUnavailable("Could not find Kubernetes configuration")

    monkeypatch.setattr(cli, "create_kubernetes_api", unavailable)

    exit_code = cli.main(["scan", "cluster"])

    assert exit_code == exit_codes.FATAL_ERROR
    assert "Could not find Kubernetes configuration" in capsys.readouterr().err


def test_cli_rejects_non_positive_concurrency(monkeypatch, capsys):
    monkeypatch.setattr(cli, "create_kubernetes_api", lambda kubeconfig, context: FakeApi())

    assert cli.main(["scan", "cluster", "--concurrency", "0"]) == exit_codes.INVALID_CONFIG


def test_cli_rules_list_json(capsys):
    exit_code = cli.main(["rules", "list", "--format", "json"])

    rules = json.loads(capsys.readouterr().out)
    assert exit_code == exit_codes.SUCCESS
    assert len(rules) == 8


def test_cli_rules_list_filters(capsys):
    cli.main(["rules", "list", "--format", "json", "--category", "risk"])
    risk_rules = json.loads(capsys.readouterr().out)
    cli.main(["rules", "list", "--format", "json", "--severity", "info"])
    info_rules = json.loads(capsys.readouterr().out)

    assert len(risk_rules) == 5
    assert {rule["ruleId"] for rule in info_rules} == {
        "DET-NGINX-CLASS-001",
        "DET-NGINX-ANNOT-PREFIX-001",
        "DET-NGINX-CTRL-001",
    }


def test_cli_rules_list_table(capsys):
    exit_code = cli.main(["rules", "list"])

    output = capsys.readouterr().out
    assert exit_code == exit_codes.SUCCESS
    assert "RISK-TLS-REDIRECT-001" in output
    assert "8 rule(s)" in output


def test_cli_rules_explain(capsys):
    exit_code = cli.main(["rules", "explain", "risk-snippet-001"])

    output = capsys.readouterr().out
    assert exit_code == exit_codes.SUCCESS
    assert output.startswith("RISK-SNIPPET-001: NGINX snippet annotations detected")
    assert "Recommendations:" in output


def test_cli_rules_explain_unknown_rule(capsys):
    exit_code = cli.main(["rules", "explain", "RISK-NOPE-001"])

    assert exit_code == exit_codes.INVALID_CONFIG
    assert "not found" in capsys.readouterr().err
