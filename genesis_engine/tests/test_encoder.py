"""Tests for genesis_engine.config_schema and genesis_engine.encoder."""

from __future__ import annotations

import json

import pytest
import yaml
from eth_abi import decode
from eth_utils import function_signature_to_4byte_selector

from genesis_engine.config_schema import load_genesis_config, parse_genesis_config
from genesis_engine.core.config import ETHER
from genesis_engine.core.errors import MalformedInputError
from genesis_engine.core.types import keccak256
from genesis_engine.encoder import (
    GENESIS_INIT_PARAMS_TYPE,
    INITIALIZE_SELECTOR,
    GenesisInitializeEncoder,
    bcs_encode_string,
    calculate_total_stake,
    encode_task_name,
    uleb128,
)


class TestConfigSchema:

    def test_camel_case_aliases(self, genesis_config):
        assert genesis_config.chain_id == 1337
        assert genesis_config.validator_config.minimum_bond == "1000000000000000000"
        assert genesis_config.randomness_config.config_v2.secrecy_threshold == 6
        assert genesis_config.oracle_config.tasks[0].task_name == "blocks"
        assert genesis_config.jwk_config.jwks[0][0].kty == "RSA"

    def test_defaults(self, config_data):
        del config_data["chainId"]
        config = parse_genesis_config(config_data)
        assert config.chain_id == 1337
        assert config.validator_config.auto_evict_enabled is False
        assert config.oracle_config.bridge_config.deploy is False

    def test_missing_field_is_malformed(self, config_data):
        del config_data["validators"]
        with pytest.raises(MalformedInputError, match="validators"):
            parse_genesis_config(config_data)

    def test_load_json(self, tmp_path, config_data):
        path = tmp_path / "genesis_config.json"
        path.write_text(json.dumps(config_data))
        assert len(load_genesis_config(path).validators) == 2

    def test_load_yaml(self, tmp_path, config_data):
        path = tmp_path / "genesis_config.yaml"
        path.write_text(yaml.safe_dump(config_data))
        assert load_genesis_config(path).major_version == 1

    def test_load_invalid_json(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("{not json")
        with pytest.raises(MalformedInputError, match="parse"):
            load_genesis_config(path)

    def test_load_missing_file(self, tmp_path):
        with pytest.raises(MalformedInputError, match="read"):
            load_genesis_config(tmp_path / "missing.json")

    def test_load_non_object(self, tmp_path):
        path = tmp_path / "list.json"
        path.write_text("[]")
        with pytest.raises(MalformedInputError):
            load_genesis_config(path)


class TestFieldCodecs:

    @pytest.mark.parametrize("value, expected", [
        (0, b"\x00"),
        (1, b"\x01"),
        (127, b"\x7f"),
        (128, b"\x80\x01"),
        (300, b"\xac\x02"),
    ])
    def test_uleb128(self, value, expected):
        assert uleb128(value) == expected

    def test_bcs_string(self):
        assert bcs_encode_string("abc") == b"\x03abc"
        assert bcs_encode_string("") == b"\x00"
        assert bcs_encode_string("é") == b"\x02\xc3\xa9"

    def test_task_name_hex_left_aligned(self):
        assert encode_task_name("0x0102") == b"\x01\x02" + b"\x00" * 30

    def test_task_name_hex_too_long(self):
        with pytest.raises(MalformedInputError):
            encode_task_name("0x" + "01" * 33)

    def test_task_name_text_hashed(self):
        assert encode_task_name("blocks") == keccak256(b"blocks")

    def test_total_stake(self, genesis_config):
        assert calculate_total_stake(genesis_config) == 5 * ETHER


class TestGenesisInitializeEncoder:

    def test_selector(self):
        assert INITIALIZE_SELECTOR == function_signature_to_4byte_selector(
            f"initialize({GENESIS_INIT_PARAMS_TYPE})"
        )

    def test_value_is_total_stake(self, genesis_config):
        call = GenesisInitializeEncoder().encode(genesis_config)
        assert call.value == 5 * ETHER
        assert call.payload[:4] == INITIALIZE_SELECTOR

    def test_payload_layout(self, genesis_config):
        call = GenesisInitializeEncoder().encode(genesis_config)
        (params,) = decode([GENESIS_INIT_PARAMS_TYPE], call.payload[4:])
        (validator_cfg, staking_cfg, governance_cfg, epoch, major, consensus, execution,
         randomness, oracle, jwk, validators) = params

        assert validator_cfg[0] == ETHER
        assert validator_cfg[3] is True
        assert staking_cfg[1] == 604_800_000_000
        assert governance_cfg[0] == 1000
        assert (epoch, major) == (7_200_000_000, 1)
        assert consensus == b"\x01\x02"
        assert execution == b""
        assert randomness == (1, (6, 7, 8))

        source_types, callbacks, tasks, bridge = oracle
        assert source_types == (0, 1)
        assert [c.lower() for c in callbacks] == ["0x" + "00" * 19 + "f4", "0x" + "00" * 19 + "f5"]
        assert tasks[0][2] == keccak256(b"blocks")
        assert bridge == (False, "0x" + "00" * 20, 0)

        assert jwk[0][0] == b"https://accounts.google.com"
        assert jwk[1][0][0] == ("k1", "RSA", "RS256", "AQAB", "abcd")

        assert len(validators) == 2
        first = validators[0]
        assert first[0].lower() == "0x" + "11" * 20
        assert first[2] == 2 * ETHER
        assert first[3] == "alpha"
        assert first[6] == bcs_encode_string("/ip4/127.0.0.1/tcp/2024")
        assert first[8] == 2

    def test_bad_stake_amount(self, config_data):
        config_data["validators"][0]["stakeAmount"] = "lots"
        with pytest.raises(MalformedInputError):
            GenesisInitializeEncoder().encode(parse_genesis_config(config_data))

    def test_bad_operator_address(self, config_data):
        config_data["validators"][0]["operator"] = "0x1234"
        with pytest.raises(MalformedInputError):
            GenesisInitializeEncoder().encode(parse_genesis_config(config_data))

    def test_u64_overflow(self, config_data):
        config_data["epochIntervalMicros"] = 2**64
        with pytest.raises(MalformedInputError):
            GenesisInitializeEncoder().encode(parse_genesis_config(config_data))

    def test_bridge_config(self, config_data):
        config_data["oracleConfig"]["bridgeConfig"] = {
            "deploy": True, "trustedBridge": "0x" + "33" * 20, "trustedSourceId": 11155111,
        }
        call = GenesisInitializeEncoder().encode(parse_genesis_config(config_data))
        (params,) = decode([GENESIS_INIT_PARAMS_TYPE], call.payload[4:])
        deploy, bridge, source_id = params[8][3]
        assert deploy is True
        assert bridge.lower() == "0x" + "33" * 20
        assert source_id == 11155111
