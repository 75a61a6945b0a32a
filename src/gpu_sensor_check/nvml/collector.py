"""NVML collector producing device snapshots.

Requires:
  pip install nvidia-ml-py

The session initializes NVML once on enter and shuts it down on exit,
whatever the exit path. Individual attribute queries never abort the
run: unsupported attributes become "N/A", other failures their error text.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Optional

import pynvml
import structlog

from gpu_sensor_check.exceptions import (
    CollectionError,
    ConfigurationError,
    DeviceNotFoundError,
)
from gpu_sensor_check.models.snapshot import NOT_AVAILABLE, DebugInfo

# Clock throttle reason bits as defined by nvml.h
THROTTLE_REASONS: Dict[str, int] = {
    "GpuIdle": 0x0000000000000001,
    "ApplicationsClocksSetting": 0x0000000000000002,
    "SwPowerCap": 0x0000000000000004,
    "HwSlowdown": 0x0000000000000008,
    "SyncBoost": 0x0000000000000010,
    "SwThermalSlowdown": 0x0000000000000020,
    "HwThermalSlowdown": 0x0000000000000040,
    "HwPowerBrakeSlowdown": 0x0000000000000080,
    "DisplayClockSetting": 0x0000000000000100,
    "Unknown": 0x8000000000000000,
}

COMPUTE_MODES: Dict[int, str] = {
    0: "Default",
    1: "ExclusiveThread",
    2: "Prohibited",
    3: "ExclusiveProcess",
}

# (snapshot prefix, NVML memory location constant name)
ECC_LOCATIONS = (
    ("ECCMem", "NVML_MEMORY_LOCATION_DEVICE_MEMORY"),
    ("ECCL1", "NVML_MEMORY_LOCATION_L1_CACHE"),
    ("ECCL2", "NVML_MEMORY_LOCATION_L2_CACHE"),
    ("ECCReg", "NVML_MEMORY_LOCATION_REGISTER_FILE"),
    ("ECCTex", "NVML_MEMORY_LOCATION_TEXTURE_MEMORY"),
)

_MIB = 1024**2


def _decode(value: Any) -> str:
    return value.decode() if isinstance(value, (bytes, bytearray)) else str(value)


def decode_throttle_reasons(mask: int) -> Dict[str, str]:
    """Decode a throttle reason bitmask into ``{reason: "active" | "inactive"}``."""
    return {
        name: "active" if mask & bit else "inactive"
        for name, bit in THROTTLE_REASONS.items()
    }


class NvmlSession:
    """Scoped NVML session.

    Usage::

        with NvmlSession() as nvml:
            handle = nvml.select_device(index=0)
            snapshot = nvml.collect_snapshot(handle)

    Parameters
    ----------
    nvml:
        Module implementing the pynvml API. Defaults to :mod:`pynvml`.
    """

    def __init__(self, nvml: Any = None):
        self._nvml = nvml if nvml is not None else pynvml
        self._active = False

    def __enter__(self) -> NvmlSession:
        try:
            self._nvml.nvmlInit()
        except self._nvml.NVMLError as e:
            raise CollectionError(f"NVML initialization failed: {_decode(e)}") from e
        self._active = True
        structlog.get_logger().debug("nvml_initialized")
        return self

    def __exit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        self._active = False
        try:
            self._nvml.nvmlShutdown()
        except self._nvml.NVMLError as e:
            # Do not mask the error that ended the session
            if exc_type is None:
                raise CollectionError(f"NVML shutdown failed: {_decode(e)}") from e
            structlog.get_logger().warning("nvml_shutdown_failed", error=_decode(e))
            return None
        structlog.get_logger().debug("nvml_shutdown")
        return None

    def _require_active(self) -> None:
        if not self._active:
            raise CollectionError(
                "NVML session is not active",
                hint="Query devices inside the 'with NvmlSession()' block.",
            )

    def device_count(self) -> int:
        """Return the number of GPUs NVML can see."""
        self._require_active()
        try:
            return int(self._nvml.nvmlDeviceGetCount())
        except self._nvml.NVMLError as e:
            raise CollectionError(f"Cannot count GPUs: {_decode(e)}") from e

    def select_device(self, index: Optional[int] = None, bus_id: Optional[str] = None) -> Any:
        """Return the handle of the GPU selected by index or PCI bus id.

        Raises:
            ConfigurationError: If not exactly one selector is given.
            CollectionError: If no GPU is present.
            DeviceNotFoundError: If the selected GPU does not exist.
        """
        self._require_active()
        if (index is None) == (bus_id is None):
            raise ConfigurationError("Exactly one of device index or bus id must be given")

        count = self.device_count()
        if count == 0:
            raise CollectionError("No NVIDIA GPU found on this host")

        log = structlog.get_logger()
        if index is not None:
            if not 0 <= index < count:
                raise DeviceNotFoundError(
                    f"with index {index}", available=[str(i) for i in range(count)]
                )
            try:
                handle = self._nvml.nvmlDeviceGetHandleByIndex(index)
            except self._nvml.NVMLError as e:
                raise DeviceNotFoundError(f"with index {index}") from e
            log.debug("device_selected", index=index)
            return handle

        try:
            handle = self._nvml.nvmlDeviceGetHandleByPciBusId(bus_id)
        except self._nvml.NVMLError as e:
            raise DeviceNotFoundError(f"with bus id {bus_id}") from e
        log.debug("device_selected", bus_id=bus_id)
        return handle

    def _query(self, attribute: str, fn: Callable[[], Any]) -> Any:
        """Run one attribute query, mapping NVML errors to snapshot values."""
        try:
            return fn()
        except self._nvml.NVMLError as e:
            log = structlog.get_logger()
            if getattr(e, "value", None) == self._nvml.NVML_ERROR_NOT_SUPPORTED:
                log.debug("attribute_unsupported", attribute=attribute)
                return NOT_AVAILABLE
            log.info("attribute_error", attribute=attribute, error=_decode(e))
            return _decode(e)

    def _feature(self, attribute: str, fn: Callable[[], Any]) -> str:
        value = self._query(attribute, fn)
        if isinstance(value, int):
            return "enabled" if value == self._nvml.NVML_FEATURE_ENABLED else "disabled"
        return value

    def _inforom(self, handle: Any) -> str:
        nvml = self._nvml
        try:
            nvml.nvmlDeviceValidateInforom(handle)
        except nvml.NVMLError as e:
            code = getattr(e, "value", None)
            if code == nvml.NVML_ERROR_NOT_SUPPORTED:
                return NOT_AVAILABLE
            if code == nvml.NVML_ERROR_CORRUPTED_INFOROM:
                return "invalid"
            return _decode(e)
        return "valid"

    def collect_snapshot(self, handle: Any) -> Dict[str, Any]:
        """Harvest every supported attribute of the device behind *handle*.

        Returns:
            Device snapshot (nested mapping of sensor name to value)
        """
        self._require_active()
        nvml = self._nvml
        query = self._query

        snapshot: Dict[str, Any] = {
            "deviceHandle": handle,
            "productName": query("productName", lambda: _decode(nvml.nvmlDeviceGetName(handle))),
            "GPUTemperature": query(
                "GPUTemperature",
                lambda: nvml.nvmlDeviceGetTemperature(handle, nvml.NVML_TEMPERATURE_GPU),
            ),
            "fanSpeed": query("fanSpeed", lambda: nvml.nvmlDeviceGetFanSpeed(handle)),
        }

        memory = query("memoryInfo", lambda: nvml.nvmlDeviceGetMemoryInfo(handle))
        if isinstance(memory, str):
            snapshot["usedMemory"] = memory
            snapshot["totalMemory"] = memory
        else:
            total = float(memory.total)
            snapshot["usedMemory"] = round(100.0 * memory.used / total, 2) if total else 0.0
            snapshot["totalMemory"] = int(memory.total // _MIB)

        snapshot["clocks"] = {
            "graphicsClock": query(
                "graphicsClock", lambda: nvml.nvmlDeviceGetClockInfo(handle, nvml.NVML_CLOCK_GRAPHICS)
            ),
            "SMClock": query(
                "SMClock", lambda: nvml.nvmlDeviceGetClockInfo(handle, nvml.NVML_CLOCK_SM)
            ),
            "memClock": query(
                "memClock", lambda: nvml.nvmlDeviceGetClockInfo(handle, nvml.NVML_CLOCK_MEM)
            ),
        }

        for error_type, suffix in (
            (nvml.NVML_MEMORY_ERROR_TYPE_CORRECTED, "AggSgl"),
            (nvml.NVML_MEMORY_ERROR_TYPE_UNCORRECTED, "AggDbl"),
        ):
            for prefix, location_name in ECC_LOCATIONS:
                location = getattr(nvml, location_name)
                snapshot[prefix + suffix] = query(
                    prefix + suffix,
                    lambda et=error_type, loc=location: nvml.nvmlDeviceGetMemoryErrorCounter(
                        handle, et, nvml.NVML_AGGREGATE_ECC, loc
                    ),
                )

        snapshot["powerManagementMode"] = self._feature(
            "powerManagementMode", lambda: nvml.nvmlDeviceGetPowerManagementMode(handle)
        )
        power = query("PWRUsage", lambda: nvml.nvmlDeviceGetPowerUsage(handle))
        snapshot["PWRUsage"] = round(power / 1000.0, 2) if isinstance(power, int) else power
        snapshot["persistenceMode"] = self._feature(
            "persistenceMode", lambda: nvml.nvmlDeviceGetPersistenceMode(handle)
        )
        snapshot["inforomValid"] = self._inforom(handle)

        snapshot["pcieLink"] = {
            "PCIeLinkGen": query(
                "PCIeLinkGen", lambda: nvml.nvmlDeviceGetCurrPcieLinkGeneration(handle)
            ),
            "PCIeLinkWidth": query(
                "PCIeLinkWidth", lambda: nvml.nvmlDeviceGetCurrPcieLinkWidth(handle)
            ),
            "maxPCIeLinkGen": query(
                "maxPCIeLinkGen", lambda: nvml.nvmlDeviceGetMaxPcieLinkGeneration(handle)
            ),
            "maxPCIeLinkWidth": query(
                "maxPCIeLinkWidth", lambda: nvml.nvmlDeviceGetMaxPcieLinkWidth(handle)
            ),
        }

        reasons = query(
            "clocksThrottleReasons",
            lambda: nvml.nvmlDeviceGetCurrentClocksThrottleReasons(handle),
        )
        snapshot["clocksThrottleReasons"] = (
            decode_throttle_reasons(reasons) if isinstance(reasons, int) else reasons
        )

        mode = query("computeMode", lambda: nvml.nvmlDeviceGetComputeMode(handle))
        snapshot["computeMode"] = COMPUTE_MODES.get(mode, str(mode)) if isinstance(mode, int) else mode

        return snapshot

    def collect_debug_info(self, device_name: str = NOT_AVAILABLE) -> DebugInfo:
        """Collect driver and library versions for the debug block."""
        self._require_active()
        nvml = self._nvml
        return DebugInfo(
            driver_version=_decode(
                self._query("driverVersion", nvml.nvmlSystemGetDriverVersion)
            ),
            nvml_version=_decode(self._query("nvmlVersion", nvml.nvmlSystemGetNVMLVersion)),
            device_count=self.device_count(),
            device_name=device_name,
        )
