"""Machine Service - list machines, read their dashboard, switch power"""

import logging
from typing import List
from urllib.parse import quote

from ..errors import ApiError
from ..types import Machine, MachineCommand, MachineStatus

_LOGGER = logging.getLogger(__name__)


class MachineService:
    """Machine ("thing") endpoints of the customer-app API"""

    def __init__(self, client):
        self.client = client

    async def list(self) -> List[Machine]:
        """
        List machines attached to the account.

        The API answers either with a bare list or with {"things": [...]}.

        Example:
            ```python
            machines = await client.machines.list()
            for machine in machines:
                print(machine.serial_number, machine.connected)
            ```
        """
        response = await self.client.request("GET", "/things", context="Failed to fetch machines")

        data = response.data
        if isinstance(data, dict):
            data = data.get("things")
        if not isinstance(data, list):
            raise ApiError(
                f"Failed to parse machines response: {response.text}",
                response.status,
            )

        try:
            machines = [Machine.from_api(item) for item in data]
        except (KeyError, TypeError, AttributeError) as e:
            raise ApiError(f"Failed to parse machines response: {e}", response.status)

        _LOGGER.debug("Found %d machines", len(machines))
        return machines

    async def get_status(self, serial_number: str) -> MachineStatus:
        """Get the dashboard status of one machine"""
        self._validate_serial(serial_number)

        response = await self.client.request(
            "GET",
            f"/things/{quote(serial_number)}/dashboard",
            context="Failed to fetch machine status",
        )

        if not isinstance(response.data, dict):
            raise ApiError(
                f"Failed to parse machine status: {response.text}",
                response.status,
            )

        try:
            status = MachineStatus.from_api(response.data)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            _LOGGER.debug("Raw response: %s", response.text)
            raise ApiError(f"Failed to parse machine status: {e}", response.status)

        _LOGGER.debug("Machine %s status: on=%s", serial_number, status.is_on())
        return status

    async def turn_on(self, serial_number: str) -> None:
        """Switch a machine to brewing mode"""
        await self._send_command(serial_number, MachineCommand.turn_on())

    async def turn_off(self, serial_number: str) -> None:
        """Switch a machine to standby"""
        await self._send_command(serial_number, MachineCommand.turn_off())

    async def set_power(self, serial_number: str, on: bool) -> None:
        if on:
            await self.turn_on(serial_number)
        else:
            await self.turn_off(serial_number)

    async def _send_command(self, serial_number: str, command: MachineCommand) -> None:
        self._validate_serial(serial_number)

        _LOGGER.debug("Sending command to %s: %s", serial_number, command)
        await self.client.request(
            "POST",
            f"/things/{quote(serial_number)}/command/CoffeeMachineChangeMode",
            command.to_dict(),
            context="Failed to send command to machine",
        )
        _LOGGER.debug("Command sent successfully to machine: %s", serial_number)

    def _validate_serial(self, serial_number: str) -> None:
        if not serial_number:
            raise ValueError("serial_number is required")
