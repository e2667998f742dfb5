"""Tests for the exceptions module."""

from arbwatch.exceptions import (
    AbiMismatchError,
    ArbWatchError,
    ConfigurationError,
    DataError,
    LedgerError,
    NetworkError,
    ValidationError,
)
from dexsim.config import ConfigError


def test_base_exception():
    """Test the base exception class."""
    error = ArbWatchError("Test error")
    assert str(error) == "Test error"
    assert error.details == {}

    error_with_details = ArbWatchError("Test error", {"key": "value"})
    assert error_with_details.details == {"key": "value"}


def test_configuration_errors():
    error = ConfigError("bad venue")
    assert isinstance(error, ConfigurationError)
    assert isinstance(error, ArbWatchError)


def test_validation_error():
    error = ValidationError("Validation failed")
    assert str(error) == "Validation failed"
    assert isinstance(error, ArbWatchError)


def test_data_error():
    error = DataError("zero reserves", source="SushiSwap")
    assert error.source == "SushiSwap"
    assert isinstance(error, ArbWatchError)


def test_abi_mismatch_is_data_error():
    error = AbiMismatchError("ABI mismatch: slot0", source="Uniswap V3", method="slot0")
    assert isinstance(error, DataError)
    assert error.method == "slot0"
    assert error.source == "Uniswap V3"


def test_network_error():
    error = NetworkError("down", endpoint="https://rpc.example", status_code=503)
    assert error.endpoint == "https://rpc.example"
    assert error.status_code == 503


def test_ledger_error():
    error = LedgerError("finalized", state="finalized", details={"balance": 1.0})
    assert error.state == "finalized"
    assert error.details == {"balance": 1.0}
