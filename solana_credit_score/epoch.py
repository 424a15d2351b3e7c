from __future__ import annotations

from typing import Optional

from .errors import FutureEpochRequested, InvalidEpoch
from .models import EpochInfo


def resolve_epoch(requested: Optional[int], epoch_info: EpochInfo) -> int:
    """Turn an absolute or negative relative epoch into an absolute epoch.

    ``None`` selects the current, incomplete epoch and ``-k`` the epoch ``k``
    before it. Future epochs are accepted here and rejected by the stages that
    need settled history.
    """
    if requested is None:
        return epoch_info.current_epoch
    if requested < 0:
        resolved = epoch_info.current_epoch - abs(requested)
        if resolved < 0:
            raise InvalidEpoch(requested, epoch_info.current_epoch)
        return resolved
    return requested


def ensure_settled(epoch: int, epoch_info: EpochInfo) -> None:
    if epoch > epoch_info.current_epoch:
        raise FutureEpochRequested(epoch, epoch_info.current_epoch)


def first_slot_in_epoch(epoch_info: EpochInfo, epoch: int) -> int:
    epoch_start = max(epoch_info.absolute_slot - epoch_info.slot_index, 0)
    epochs_back = max(epoch_info.current_epoch - epoch, 0)
    return max(epoch_start - epochs_back * epoch_info.slots_in_epoch, 0)
