import math
from dataclasses import dataclass

from .types import BatteryLevel, BatteryState, PowerSource


@dataclass
class PowerStatus:
    source: PowerSource = PowerSource.BATTERY
    percentage: float = 0.0
    level: BatteryLevel = BatteryLevel.UNKNOWN
    state: BatteryState = BatteryState.UNKNOWN

    def update_source(self, on_battery: bool) -> None:
        self.source = PowerSource.BATTERY if on_battery else PowerSource.PLUGGED

    def update_percentage(self, percentage: float) -> None:
        value = float(percentage)
        if math.isnan(value):
            # NaN compares false against every threshold; keep it as reported.
            self.percentage = value
            return
        self.percentage = min(max(value, 0.0), 100.0)

    def update_level(self, level: BatteryLevel) -> None:
        self.level = level

    def update_state(self, state: BatteryState) -> None:
        self.state = state
