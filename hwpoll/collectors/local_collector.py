"""
Local Hardware Tree.

Exposes the sensors of the local machine as a hardware tree, using psutil
for CPU load and grouped temperature chips, sysfs hwmon for per-device
chips (drives, AMD GPUs, super I/O) and nvidia-smi for NVIDIA GPUs.
"""

import logging
import platform
import shutil
import subprocess
import time
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import psutil

from .base import HardwareNode, HardwareTree, Sensor
from ..core.config import HardwareConfig
from ..core.errors import EngineInitError, HardwareAccessError
from ..core.models import HardwareCategory, SensorKind


logger = logging.getLogger(__name__)


CPU_CHIPS = ("coretemp", "k10temp", "zenpower", "cpu_thermal", "cpu-thermal")
MEMORY_CHIPS = ("jc42", "spd5118")
BOARD_CHIPS = ("acpitz",)
SUPER_IO_CHIPS = ("nct", "it87", "f718", "w83")
STORAGE_CHIPS = ("nvme", "drivetemp")
AMD_GPU_CHIPS = ("amdgpu",)


def _read_text(path: Path) -> Optional[str]:
    try:
        return path.read_text().strip()
    except (FileNotFoundError, PermissionError, OSError):
        return None


def _read_number(path: Path, scale: float = 1.0) -> Optional[float]:
    raw = _read_text(path)
    if raw is None:
        return None
    try:
        return int(raw) / scale
    except ValueError:
        return None


class PsutilChipNode(HardwareNode):
    """A node backed by psutil temperature chips matched by name prefix."""

    def __init__(
        self,
        category: HardwareCategory,
        name: str,
        chips: Sequence[str],
        children: Optional[List[HardwareNode]] = None,
    ):
        self.category = category
        self.name = name
        self._chips = tuple(chips)
        self._children = children or []
        self._temperatures: Dict[str, Optional[float]] = {}

    def _read_chips(self) -> Dict[str, Optional[float]]:
        try:
            temps = psutil.sensors_temperatures()
        except AttributeError:
            # Platform has no temperature API
            return {}

        values: Dict[str, Optional[float]] = {}
        for chip, entries in temps.items():
            if not chip.startswith(self._chips):
                continue
            for index, entry in enumerate(entries):
                label = entry.label or f"{chip} {index + 1}"
                values.setdefault(label, entry.current)
        return values

    def refresh(self) -> None:
        self._temperatures = self._read_chips()

    def children(self) -> List[HardwareNode]:
        return list(self._children)

    def sensors(self) -> List[Sensor]:
        return [
            Sensor(SensorKind.TEMPERATURE, label, lambda label=label: self._temperatures.get(label))
            for label in self._temperatures
        ]


class CpuNode(PsutilChipNode):
    """CPU package: psutil load plus the CPU temperature chips."""

    # Shortest window psutil can turn into a meaningful load figure
    MIN_SAMPLE_SECONDS = 0.1

    def __init__(self):
        super().__init__(HardwareCategory.CPU, self._get_cpu_model(), CPU_CHIPS)
        self._load: Optional[float] = None
        self._sampled_at: Optional[float] = None

    @staticmethod
    def _get_cpu_model() -> str:
        """Get CPU model name."""
        try:
            if platform.system() == "Darwin":
                result = subprocess.run(
                    ["sysctl", "-n", "machdep.cpu.brand_string"],
                    capture_output=True,
                    text=True,
                    timeout=2,
                )
                return result.stdout.strip() or "CPU"
            elif platform.system() == "Linux":
                with open("/proc/cpuinfo", "r") as f:
                    for line in f:
                        if "model name" in line:
                            return line.split(":")[1].strip()
        except (OSError, subprocess.SubprocessError):
            pass
        return platform.processor() or "CPU"

    def prime(self) -> None:
        """Start the first load window; psutil reports 0.0 for it."""
        psutil.cpu_percent(interval=None)
        self._sampled_at = time.monotonic()

    def _sample_load(self) -> None:
        if self._sampled_at is None:
            elapsed = 0.0
        else:
            elapsed = time.monotonic() - self._sampled_at

        if elapsed >= self.MIN_SAMPLE_SECONDS:
            self._load = psutil.cpu_percent(interval=None)
        elif self._load is None:
            # No sample yet, wait out the rest of the window
            self._load = psutil.cpu_percent(interval=self.MIN_SAMPLE_SECONDS - elapsed)
        else:
            # Too soon after the last sample, the counters would read 0.0
            return
        self._sampled_at = time.monotonic()

    def refresh(self) -> None:
        self._sample_load()
        super().refresh()

    def sensors(self) -> List[Sensor]:
        return super().sensors() + [Sensor(SensorKind.LOAD, "CPU Total", lambda: self._load)]


class HwmonNode(HardwareNode):
    """
    A node backed by one sysfs hwmon directory.

    Temperatures come from ``temp*_input`` (millidegrees) and fans from
    ``fan*_input`` (RPM). AMD GPUs additionally report a busy percentage
    on the parent device.
    """

    def __init__(self, path: Path, category: HardwareCategory, name: Optional[str] = None):
        self.path = path
        self.category = category
        self.chip = _read_text(path / "name") or path.name
        self.name = name or self._device_model() or self.chip
        self._values: Dict[str, Optional[float]] = {}
        self._kinds: Dict[str, SensorKind] = {}

    def _device_model(self) -> Optional[str]:
        return _read_text(self.path / "device" / "model")

    def _label(self, input_file: Path) -> str:
        stem = input_file.name[: -len("_input")]
        return _read_text(self.path / f"{stem}_label") or stem

    def refresh(self) -> None:
        if not self.path.is_dir():
            raise HardwareAccessError(self.name, f"{self.path} is gone")

        values: Dict[str, Optional[float]] = {}
        kinds: Dict[str, SensorKind] = {}
        for input_file in sorted(self.path.glob("temp*_input")):
            label = self._label(input_file)
            values[label] = _read_number(input_file, 1000.0)
            kinds[label] = SensorKind.TEMPERATURE
        for input_file in sorted(self.path.glob("fan*_input")):
            label = self._label(input_file)
            values[label] = _read_number(input_file)
            kinds[label] = SensorKind.FAN

        if self.category == HardwareCategory.GPU_AMD:
            busy = _read_number(self.path / "device" / "gpu_busy_percent")
            if busy is not None:
                values["GPU Core"] = busy
                kinds["GPU Core"] = SensorKind.LOAD

        self._values = values
        self._kinds = kinds

    def sensors(self) -> List[Sensor]:
        return [
            Sensor(self._kinds[key], key, lambda key=key: self._values.get(key))
            for key in self._values
        ]


class NvidiaSmiNode(HardwareNode):
    """First NVIDIA GPU as reported by ``nvidia-smi``."""

    QUERY = "name,temperature.gpu,utilization.gpu"

    def __init__(self, binary: str, timeout: float = 2.0):
        self.category = HardwareCategory.GPU_NVIDIA
        self.name = "NVIDIA GPU"
        self._binary = binary
        self._timeout = timeout
        self._temperature: Optional[float] = None
        self._load: Optional[float] = None

    @staticmethod
    def _parse(field: str) -> Optional[float]:
        try:
            return float(field)
        except ValueError:
            # "[N/A]" and similar
            return None

    def refresh(self) -> None:
        try:
            result = subprocess.run(
                [self._binary, f"--query-gpu={self.QUERY}", "--format=csv,noheader,nounits"],
                capture_output=True,
                text=True,
                timeout=self._timeout,
            )
        except (OSError, subprocess.SubprocessError) as e:
            raise HardwareAccessError(self.name, str(e)) from e

        if result.returncode != 0 or not result.stdout.strip():
            raise HardwareAccessError(self.name, result.stderr.strip() or "no output")

        fields = [f.strip() for f in result.stdout.strip().splitlines()[0].split(",")]
        if len(fields) < 3:
            raise HardwareAccessError(self.name, f"unexpected output: {result.stdout!r}")

        self.name = fields[0] or self.name
        self._temperature = self._parse(fields[1])
        self._load = self._parse(fields[2])

    def sensors(self) -> List[Sensor]:
        return [
            Sensor(SensorKind.TEMPERATURE, "GPU Core", lambda: self._temperature),
            Sensor(SensorKind.LOAD, "GPU Core", lambda: self._load),
        ]


class LocalHardwareTree(HardwareTree):
    """
    Hardware tree for the local machine.

    Storage nodes are re-discovered on every ``roots()`` call so that drives
    plugged in later appear; existing drives keep their node instance.
    """

    def __init__(self, config: Optional[HardwareConfig] = None):
        self.config = config or HardwareConfig()
        self._hwmon_root = Path(self.config.hwmon_root)
        self._fixed: List[HardwareNode] = []
        self._storage: Dict[Path, HwmonNode] = {}
        self._opened = False

    def _hwmon_dirs(self, prefixes: Sequence[str]) -> List[Path]:
        if not self._hwmon_root.is_dir():
            return []
        found = []
        for hwmon_dir in sorted(self._hwmon_root.iterdir()):
            name = _read_text(hwmon_dir / "name")
            if name and name.startswith(tuple(prefixes)):
                found.append(hwmon_dir)
        return found

    def open(self) -> None:
        cpu = CpuNode()
        try:
            cpu.prime()
        except Exception as e:
            raise EngineInitError(f"CPU counters unavailable: {e}") from e

        if not hasattr(psutil, "sensors_temperatures") and not self._hwmon_root.is_dir():
            logger.warning("No temperature sources on this platform, reporting load only")

        super_io = [HwmonNode(path, HardwareCategory.MOTHERBOARD) for path in self._hwmon_dirs(SUPER_IO_CHIPS)]
        self._fixed = [
            cpu,
            PsutilChipNode(HardwareCategory.MEMORY, "Memory", MEMORY_CHIPS),
            PsutilChipNode(HardwareCategory.MOTHERBOARD, "Motherboard", BOARD_CHIPS, children=super_io),
        ]

        if self.config.nvidia_smi:
            binary = shutil.which("nvidia-smi")
            if binary:
                self._fixed.append(NvidiaSmiNode(binary, self.config.nvidia_smi_timeout_seconds))

        for path in self._hwmon_dirs(AMD_GPU_CHIPS):
            self._fixed.append(HwmonNode(path, HardwareCategory.GPU_AMD, name="AMD GPU"))

        self._opened = True
        logger.info(
            f"Opened local hardware: {len(self._fixed)} fixed nodes, "
            f"{len(self._discover_storage())} drives"
        )

    def _discover_storage(self) -> List[HwmonNode]:
        current = {}
        for path in self._hwmon_dirs(STORAGE_CHIPS):
            current[path] = self._storage.get(path) or HwmonNode(path, HardwareCategory.STORAGE)
        for path in self._storage.keys() - current.keys():
            logger.info(f"Drive removed: {self._storage[path].name}")
        self._storage = current
        return list(current.values())

    def roots(self) -> List[HardwareNode]:
        if not self._opened:
            return []
        return self._fixed + self._discover_storage()

    def close(self) -> None:
        self._fixed = []
        self._storage = {}
        self._opened = False
