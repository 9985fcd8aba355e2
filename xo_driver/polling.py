"""IP address acquisition for freshly created VMs."""

from __future__ import annotations

import time
from typing import Callable, Iterable, Optional

from xo_driver.constants import IP_POLL_ATTEMPTS, IP_POLL_INTERVAL
from xo_driver.exceptions import DriverError, IPTimeoutError, RemoteQueryError
from xo_driver.models import RemoteVM
from xo_driver.utils import log


def is_ipv4_candidate(address: str) -> bool:
    """Dotted and colon-free; IPv6 addresses reported alongside are skipped."""
    return "." in address and ":" not in address


def select_ipv4(addresses: Iterable[str]) -> Optional[str]:
    for address in addresses:
        if is_ipv4_candidate(address):
            return address
    return None


def wait_for_ipv4(
    vm_id: str,
    fetch: Callable[[], RemoteVM],
    attempts: int = IP_POLL_ATTEMPTS,
    interval: float = IP_POLL_INTERVAL,
    sleep: Callable[[float], None] = time.sleep,
) -> str:
    """Poll ``fetch`` until the VM reports an IPv4 address.

    A failed fetch aborts at once with RemoteQueryError. Running out of
    attempts raises IPTimeoutError; there is no sleep after the final poll.
    """
    for attempt in range(1, attempts + 1):
        try:
            vm = fetch()
        except DriverError as exc:
            raise RemoteQueryError(f"Failed to query VM {vm_id} while waiting for IP: {exc}") from exc
        address = select_ipv4(vm.addresses)
        if address:
            log("SUCCESS", f"Got IP: {address}")
            return address
        log("DEBUG", f"No IPv4 address on VM {vm_id} yet (attempt {attempt}/{attempts})")
        if attempt < attempts:
            sleep(interval)
    raise IPTimeoutError(vm_id, attempts)
