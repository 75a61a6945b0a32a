"""Shared fixtures: a fake pynvml module and nominal device snapshots."""

from types import SimpleNamespace
from typing import Any, Dict, Iterable, Optional

import pytest
import structlog

MIB = 1024**2


class FakeNVMLError(Exception):
    """Stand-in for pynvml.NVMLError carrying an NVML return code."""

    def __init__(self, value: int) -> None:
        self.value = value
        super().__init__(value)

    def __str__(self) -> str:
        return f"NVML error code {self.value}"


class FakeNvml:
    """Minimal object implementing the pynvml calls used by the collector.

    Every method name listed in *unsupported* raises NOT_SUPPORTED; names
    in *errors* raise the mapped NVML code.
    """

    NVMLError = FakeNVMLError

    NVML_ERROR_NOT_SUPPORTED = 3
    NVML_ERROR_NOT_FOUND = 6
    NVML_ERROR_CORRUPTED_INFOROM = 14
    NVML_ERROR_DRIVER_NOT_LOADED = 9
    NVML_ERROR_UNKNOWN = 999

    NVML_TEMPERATURE_GPU = 0
    NVML_CLOCK_GRAPHICS = 0
    NVML_CLOCK_SM = 1
    NVML_CLOCK_MEM = 2
    NVML_MEMORY_ERROR_TYPE_CORRECTED = 0
    NVML_MEMORY_ERROR_TYPE_UNCORRECTED = 1
    NVML_AGGREGATE_ECC = 1
    NVML_MEMORY_LOCATION_L1_CACHE = 0
    NVML_MEMORY_LOCATION_L2_CACHE = 1
    NVML_MEMORY_LOCATION_DEVICE_MEMORY = 2
    NVML_MEMORY_LOCATION_REGISTER_FILE = 3
    NVML_MEMORY_LOCATION_TEXTURE_MEMORY = 4
    NVML_FEATURE_DISABLED = 0
    NVML_FEATURE_ENABLED = 1

    def __init__(
        self,
        device_count: int = 1,
        temperature: int = 45,
        persistence: int = 1,
        pcie_gen: int = 2,
        throttle_mask: int = 0x1,
        ecc: Optional[Dict[Any, int]] = None,
        bus_ids: Iterable[str] = ("00000000:3B:00.0",),
        unsupported: Iterable[str] = (),
        errors: Optional[Dict[str, int]] = None,
    ) -> None:
        self.device_count = device_count
        self.temperature = temperature
        self.persistence = persistence
        self.pcie_gen = pcie_gen
        self.throttle_mask = throttle_mask
        self.ecc = ecc or {}
        self.bus_ids = set(bus_ids)
        self.unsupported = set(unsupported)
        self.errors = errors or {}
        self.init_calls = 0
        self.shutdown_calls = 0

    def _check(self, name: str) -> None:
        if name in self.unsupported:
            raise FakeNVMLError(self.NVML_ERROR_NOT_SUPPORTED)
        if name in self.errors:
            raise FakeNVMLError(self.errors[name])

    def nvmlInit(self) -> None:
        self._check("nvmlInit")
        self.init_calls += 1

    def nvmlShutdown(self) -> None:
        self.shutdown_calls += 1
        self._check("nvmlShutdown")

    def nvmlDeviceGetCount(self) -> int:
        self._check("nvmlDeviceGetCount")
        return self.device_count

    def nvmlDeviceGetHandleByIndex(self, index: int) -> str:
        self._check("nvmlDeviceGetHandleByIndex")
        return f"handle-{index}"

    def nvmlDeviceGetHandleByPciBusId(self, bus_id: str) -> str:
        self._check("nvmlDeviceGetHandleByPciBusId")
        if bus_id not in self.bus_ids:
            raise FakeNVMLError(self.NVML_ERROR_NOT_FOUND)
        return f"handle-{bus_id}"

    def nvmlDeviceGetName(self, handle: str) -> bytes:
        self._check("nvmlDeviceGetName")
        return b"Tesla T4"

    def nvmlDeviceGetTemperature(self, handle: str, sensor: int) -> int:
        self._check("nvmlDeviceGetTemperature")
        return self.temperature

    def nvmlDeviceGetFanSpeed(self, handle: str) -> int:
        self._check("nvmlDeviceGetFanSpeed")
        return 30

    def nvmlDeviceGetMemoryInfo(self, handle: str) -> SimpleNamespace:
        self._check("nvmlDeviceGetMemoryInfo")
        return SimpleNamespace(total=16384 * MIB, used=4096 * MIB, free=12288 * MIB)

    def nvmlDeviceGetClockInfo(self, handle: str, clock: int) -> int:
        self._check("nvmlDeviceGetClockInfo")
        return {0: 585, 1: 600, 2: 5000}[clock]

    def nvmlDeviceGetMemoryErrorCounter(
        self, handle: str, error_type: int, counter_type: int, location: int
    ) -> int:
        self._check("nvmlDeviceGetMemoryErrorCounter")
        return self.ecc.get((error_type, location), 0)

    def nvmlDeviceGetPowerManagementMode(self, handle: str) -> int:
        self._check("nvmlDeviceGetPowerManagementMode")
        return self.NVML_FEATURE_ENABLED

    def nvmlDeviceGetPowerUsage(self, handle: str) -> int:
        self._check("nvmlDeviceGetPowerUsage")
        return 27350

    def nvmlDeviceGetPersistenceMode(self, handle: str) -> int:
        self._check("nvmlDeviceGetPersistenceMode")
        return self.persistence

    def nvmlDeviceValidateInforom(self, handle: str) -> None:
        self._check("nvmlDeviceValidateInforom")

    def nvmlDeviceGetCurrPcieLinkGeneration(self, handle: str) -> int:
        self._check("nvmlDeviceGetCurrPcieLinkGeneration")
        return self.pcie_gen

    def nvmlDeviceGetCurrPcieLinkWidth(self, handle: str) -> int:
        self._check("nvmlDeviceGetCurrPcieLinkWidth")
        return 16

    def nvmlDeviceGetMaxPcieLinkGeneration(self, handle: str) -> int:
        self._check("nvmlDeviceGetMaxPcieLinkGeneration")
        return 3

    def nvmlDeviceGetMaxPcieLinkWidth(self, handle: str) -> int:
        self._check("nvmlDeviceGetMaxPcieLinkWidth")
        return 16

    def nvmlDeviceGetCurrentClocksThrottleReasons(self, handle: str) -> int:
        self._check("nvmlDeviceGetCurrentClocksThrottleReasons")
        return self.throttle_mask

    def nvmlDeviceGetComputeMode(self, handle: str) -> int:
        self._check("nvmlDeviceGetComputeMode")
        return 0

    def nvmlSystemGetDriverVersion(self) -> str:
        self._check("nvmlSystemGetDriverVersion")
        return "535.104.05"

    def nvmlSystemGetNVMLVersion(self) -> str:
        self._check("nvmlSystemGetNVMLVersion")
        return "12.535.104.05"


def make_snapshot(**overrides: Any) -> Dict[str, Any]:
    """Build a nominal snapshot (status OK with default thresholds)."""
    snapshot: Dict[str, Any] = {
        "deviceHandle": object(),
        "productName": "Tesla T4",
        "GPUTemperature": 45,
        "fanSpeed": 30,
        "usedMemory": 25.0,
        "totalMemory": 16384,
        "clocks": {"graphicsClock": 585, "SMClock": 600, "memClock": 5000},
        "ECCMemAggSgl": 0,
        "ECCL1AggSgl": 0,
        "ECCL2AggSgl": 0,
        "ECCRegAggSgl": 0,
        "ECCTexAggSgl": 0,
        "ECCMemAggDbl": 0,
        "ECCL1AggDbl": 0,
        "ECCL2AggDbl": 0,
        "ECCRegAggDbl": 0,
        "ECCTexAggDbl": 0,
        "powerManagementMode": "enabled",
        "PWRUsage": 27.35,
        "persistenceMode": "enabled",
        "inforomValid": "valid",
        "pcieLink": {
            "PCIeLinkGen": 2,
            "PCIeLinkWidth": 16,
            "maxPCIeLinkGen": 3,
            "maxPCIeLinkWidth": 16,
        },
        "clocksThrottleReasons": {
            "GpuIdle": "active",
            "HwSlowdown": "inactive",
            "SwPowerCap": "inactive",
            "Unknown": "inactive",
        },
        "computeMode": "Default",
    }
    snapshot.update(overrides)
    return snapshot


@pytest.fixture
def nominal_snapshot() -> Dict[str, Any]:
    return make_snapshot()


@pytest.fixture
def fake_nvml() -> FakeNvml:
    return FakeNvml()


@pytest.fixture
def config_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Isolate the config path environment variable the loader sets."""
    monkeypatch.setenv("GPU_SENSOR_CONFIG_PATH", "")
    monkeypatch.delenv("GPU_SENSOR_LOG_LEVEL", raising=False)
    monkeypatch.delenv("GPU_SENSOR_LOG_FORMAT", raising=False)
    monkeypatch.delenv("GPU_SENSOR_THRESHOLDS", raising=False)


@pytest.fixture(autouse=True)
def reset_structlog():
    """Undo logging configuration done by CLI tests."""
    yield
    structlog.reset_defaults()
