"""
test_config.py: Environment configuration and the integrator fee policy.
"""

import pytest
from solders.pubkey import Pubkey

from jupiter_tx.config import DEFAULT_JUPITER_API_URL, IntegratorFee, PipelineConfig
from jupiter_tx.errors import ConfigurationError

FEE_ACCOUNT = str(Pubkey.new_unique())


class TestFromEnv:
    def test_minimal(self):
        config = PipelineConfig.from_env({"RPC_URL": "https://rpc.test"})
        assert config.rpc_url == "https://rpc.test"
        assert config.jupiter_api_url == DEFAULT_JUPITER_API_URL
        assert config.fee is None
        assert config.commitment == "confirmed"
        assert config.api_key is None

    def test_full(self):
        config = PipelineConfig.from_env(
            {
                "RPC_URL": "https://rpc.test",
                "JUPITER_API_URL": "https://api.jup.ag/",
                "API_KEY": "k",
                "FEE_ACCOUNT": FEE_ACCOUNT,
                "FEE_BPS": "20",
                "COMMITMENT": "Finalized",
                "CONFIRM_TIMEOUT_SECONDS": "45",
                "HTTP_TIMEOUT_SECONDS": "7.5",
            }
        )
        assert config.jupiter_api_url == "https://api.jup.ag"
        assert config.fee == IntegratorFee(account=FEE_ACCOUNT, bps=20)
        assert config.commitment == "finalized"
        assert config.confirm_timeout_seconds == 45.0
        assert config.http_timeout_seconds == 7.5

    def test_rpc_url_required(self):
        with pytest.raises(ConfigurationError, match="RPC_URL"):
            PipelineConfig.from_env({})

    def test_unknown_commitment(self):
        with pytest.raises(ConfigurationError, match="COMMITMENT"):
            PipelineConfig.from_env({"RPC_URL": "https://rpc.test", "COMMITMENT": "max"})

    def test_bad_timeout(self):
        with pytest.raises(ConfigurationError, match="HTTP_TIMEOUT_SECONDS"):
            PipelineConfig.from_env({"RPC_URL": "https://rpc.test", "HTTP_TIMEOUT_SECONDS": "soon"})

    def test_secrets_not_in_repr(self):
        config = PipelineConfig.from_env({"RPC_URL": "https://rpc.test", "API_KEY": "hunter2", "SECRET_KEY": "s3cr3t"})
        assert "hunter2" not in repr(config)
        assert "s3cr3t" not in repr(config)

    def test_dotenv_file_is_loaded(self, tmp_path, monkeypatch):
        # set first so the value load_dotenv writes is undone after the test
        monkeypatch.setenv("RPC_URL", "")
        monkeypatch.delenv("RPC_URL")
        env_file = tmp_path / ".env"
        env_file.write_text("RPC_URL=https://from-dotenv.test\n", encoding="utf-8")

        config = PipelineConfig.from_env(env_file=env_file)

        assert config.rpc_url == "https://from-dotenv.test"

    def test_process_env_wins_over_dotenv(self, tmp_path, monkeypatch):
        monkeypatch.setenv("RPC_URL", "https://from-env.test")
        env_file = tmp_path / ".env"
        env_file.write_text("RPC_URL=https://from-dotenv.test\n", encoding="utf-8")

        assert PipelineConfig.from_env(env_file=env_file).rpc_url == "https://from-env.test"


class TestIntegratorFee:
    def test_neither_set_disables_fee(self):
        assert IntegratorFee.from_values(None, "") is None

    @pytest.mark.parametrize("account,bps", [(FEE_ACCOUNT, None), (None, "10")])
    def test_both_or_neither(self, account, bps):
        with pytest.raises(ConfigurationError, match="together"):
            IntegratorFee.from_values(account, bps)

    @pytest.mark.parametrize("bps", ["0", "10001", "-5"])
    def test_bps_range(self, bps):
        with pytest.raises(ConfigurationError, match="FEE_BPS"):
            IntegratorFee.from_values(FEE_ACCOUNT, bps)

    def test_bps_must_be_integer(self):
        with pytest.raises(ConfigurationError, match="integer"):
            IntegratorFee.from_values(FEE_ACCOUNT, "2.5")

    def test_account_must_be_pubkey(self):
        with pytest.raises(ConfigurationError, match="FEE_ACCOUNT"):
            IntegratorFee.from_values("nope", "10")

    def test_low_bps_is_not_raised_to_a_floor(self):
        assert IntegratorFee.from_values(FEE_ACCOUNT, "1").bps == 1
