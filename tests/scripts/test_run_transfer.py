"""End-to-end tests for scripts/run_transfer.py over file-backed SQLite stores."""

import pytest

from scripts.run_transfer import main


@pytest.fixture
def cli_stores(file_stores, monkeypatch):
    monkeypatch.delenv("TRANSFER_MAIN_DB_URL", raising=False)
    monkeypatch.delenv("TRANSFER_LOOKUP_DB_URL", raising=False)
    main_url, lookup_url, stores = file_stores
    stores.add_source_rows(
        [
            ("C1", "103", "A1", "0", "2024-01-01", "first"),
            ("C2", "200", "A2", "1", "2024-01-02", None),
            ("C3", "200", "A3", "0", None, None),
            ("", "200", "A4", "0", None, None),
        ]
    )
    stores.add_xref({"A1": "X1"})
    stores.add_customers({"C1": ("T1", "I1"), "C2": ("T2", "I2")})
    return ["--main-url", main_url, "--lookup-url", lookup_url], stores


class TestRunTransferCli:
    def test_successful_run(self, cli_stores, capsys):
        urls, stores = cli_stores

        assert main(urls) == 0

        out = capsys.readouterr().out
        assert "Processed: 4" in out
        assert "Variant 0: queued 1, inserted 1" in out
        assert "no_lookup_match: 1" in out
        assert stores.zero_rows() == [("T1", "812", "X1", "2024-01-01", "first", None, None, "RB")]
        assert stores.one_rows() == [("T2", "I2", "200", "A2", "2024-01-02", None, None, None)]
        assert stores.synced_accounts() == []

    def test_second_run_inserts_nothing(self, cli_stores, capsys):
        urls, stores = cli_stores
        assert main(urls) == 0
        capsys.readouterr()

        assert main(urls) == 0

        assert "Variant 0: queued 1, inserted 0" in capsys.readouterr().out
        assert len(stores.zero_rows()) == 1

    def test_overrides_and_mark_processed(self, cli_stores, capsys):
        urls, stores = cli_stores

        assert main([*urls, "--page-size", "1", "--batch-size", "1", "--mark-processed"]) == 0

        out = capsys.readouterr().out
        assert "Pages: 5" in out
        assert "Marked processed: 2" in out
        assert stores.synced_accounts() == ["A1", "A2"]

    def test_prepare_test_tables(self, cli_stores, capsys):
        urls, stores = cli_stores

        assert main([*urls, "--prepare-test-tables"]) == 0

        assert "TRANSFERACCOUNT_TEST" in capsys.readouterr().out
        assert stores.zero_rows() == []
        assert stores.fetch("SELECT userid, brchid, accountno FROM TRANSFERACCOUNT_TEST") == [("T1", "812", "X1")]
        assert stores.fetch("SELECT userid, accountno FROM CUSTSETTRANSACCT_TEST") == [("T2", "A2")]

    def test_missing_main_url(self, cli_stores, capsys):
        assert main([]) == 1
        assert "No main database URL" in capsys.readouterr().err

    def test_invalid_configuration(self, cli_stores, tmp_path, capsys):
        urls, _ = cli_stores
        config = tmp_path / "bad.yaml"
        config.write_text("transfer:\n  page_size: 0\n")

        assert main([*urls, "--config", str(config)]) == 1
        assert "page_size must be positive" in capsys.readouterr().err

    def test_missing_configuration_file(self, cli_stores, tmp_path, capsys):
        urls, _ = cli_stores
        assert main([*urls, "--config", str(tmp_path / "absent.yaml")]) == 1
        assert "Configuration file not found" in capsys.readouterr().err

    def test_invalid_override(self, cli_stores, capsys):
        urls, _ = cli_stores
        assert main([*urls, "--batch-size", "0"]) == 1
        assert "batch_size must be positive" in capsys.readouterr().err

    def test_duplicate_ordering_key(self, cli_stores, capsys):
        urls, stores = cli_stores
        stores.add_source_rows([("C2", "200", "A2", "1", None, None)])

        assert main(urls) == 1

        assert "not unique" in capsys.readouterr().err
        assert stores.one_rows() == []

    def test_one_correlation_id_per_invocation(self, cli_stores, captured_logs):
        urls, _ = cli_stores

        assert main(urls) == 0
        first = {r["message"]: r.get("correlation_id") for r in captured_logs()}
        assert main(urls) == 0
        ids = [r.get("correlation_id") for r in captured_logs()]

        assert first["transfer_config_loaded"] is not None
        assert first["transfer_config_loaded"] == first["transfer_started"] == first["transfer_completed"]
        assert len(set(ids)) == 2
