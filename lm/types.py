"""
Type definitions for the lm client
Matching the customer-app API payloads
"""

import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional

from .crypto.installation_key import InstallationKey


# Type aliases
SerialNumber = str
MachineMode = Literal["BrewingMode", "StandBy"]

WIDGET_MACHINE_STATUS = "CMMachineStatus"
WIDGET_COFFEE_BOILER = "CMCoffeeBoiler"


@dataclass
class APIResponse:
    """Raw API response"""
    status: int
    text: str
    data: Optional[Any] = None

    @property
    def success(self) -> bool:
        return 200 <= self.status < 300


@dataclass
class Credentials:
    """Tokens for the signed-in user, plus the installation key when registered"""
    username: str
    access_token: str
    refresh_token: str
    installation_key: Optional[InstallationKey] = None


@dataclass
class Machine:
    """Machine ("thing") attached to the account"""
    serial_number: SerialNumber
    connected: bool = False
    model: Optional[str] = None
    name: Optional[str] = None
    location: Optional[str] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Machine":
        return cls(
            serial_number=data["serialNumber"],
            connected=bool(data.get("connected", False)),
            model=data.get("modelName"),
            name=data.get("name"),
            location=data.get("location"),
        )

    @property
    def display_name(self) -> str:
        return f"{self.name or 'Unnamed'} ({self.model or 'Unknown'})"


@dataclass
class MachineCommand:
    """Body for CoffeeMachineChangeMode"""
    mode: MachineMode

    @classmethod
    def turn_on(cls) -> "MachineCommand":
        return cls(mode="BrewingMode")

    @classmethod
    def turn_off(cls) -> "MachineCommand":
        return cls(mode="StandBy")

    def to_dict(self) -> Dict[str, str]:
        return {"mode": self.mode}


@dataclass
class WidgetOutput:
    status: Optional[str] = None
    mode: Optional[str] = None
    ready_start_time: Optional[int] = None


@dataclass
class Widget:
    code: str
    output: Optional[WidgetOutput] = None


@dataclass
class MachineStatus:
    """Machine dashboard, reduced to the widgets the client reads"""
    widgets: List[Widget] = field(default_factory=list)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "MachineStatus":
        widgets: List[Widget] = []
        for raw in data.get("widgets") or []:
            output = raw.get("output")
            ready_start_time = output.get("readyStartTime") if isinstance(output, dict) else None
            widgets.append(
                Widget(
                    code=raw["code"],
                    output=WidgetOutput(
                        status=output.get("status"),
                        mode=output.get("mode"),
                        # Epoch milliseconds, sometimes sent as a string
                        ready_start_time=(
                            int(ready_start_time) if ready_start_time is not None else None
                        ),
                    ) if isinstance(output, dict) else None,
                )
            )
        return cls(widgets=widgets)

    def _widget_status(self, code: str) -> Optional[WidgetOutput]:
        for widget in self.widgets:
            if widget.code == code and widget.output and widget.output.status:
                return widget.output
        return None

    def is_on(self) -> bool:
        output = self._widget_status(WIDGET_MACHINE_STATUS)
        return output is not None and output.status != "StandBy"

    def get_status_string(self, now_ms: Optional[int] = None) -> str:
        """
        Human-readable status.

        Args:
            now_ms: Current time in epoch milliseconds (defaults to the clock)
        """
        machine = self._widget_status(WIDGET_MACHINE_STATUS)
        if machine is None:
            return "Unknown"
        if machine.status == "StandBy":
            return "Standby"
        if machine.status != "PoweredOn":
            return machine.status or "Unknown"

        boiler = self._widget_status(WIDGET_COFFEE_BOILER)
        if boiler is None:
            return "On"
        if boiler.status == "Ready":
            return "On (Ready)"
        if boiler.ready_start_time is None:
            return "On (Ready soon)"

        if now_ms is None:
            now_ms = int(time.time() * 1000)
        if boiler.ready_start_time <= now_ms:
            return "On (Ready in < 1 min)"

        minutes = (boiler.ready_start_time - now_ms) // 1000 // 60
        if minutes == 0:
            return "On (Ready in < 1 min)"
        if minutes == 1:
            return "On (Ready in 1 min)"
        return f"On (Ready in {minutes} mins)"
