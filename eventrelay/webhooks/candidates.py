"""Candidate selection - which downstream targets to try, in order."""

from typing import List

from eventrelay.core.config import RelayConfig, is_unset
from eventrelay.core.secrets import CallbackUrl
from eventrelay.webhooks.models import ForwardCandidate, CANARY_LABEL, STABLE_LABEL


def select_candidates(config: RelayConfig) -> List[ForwardCandidate]:
    """
    Build the ordered candidate list for one invocation.

    The canary slot comes first, then the stable slot. Slots that are
    absent or hold an unset sentinel are skipped. An empty list means the
    relay has nowhere to forward to.

    Args:
        config: Relay configuration

    Returns:
        Zero, one or two candidates
    """
    candidates = []

    for label, slot in ((CANARY_LABEL, config.canary_url), (STABLE_LABEL, config.stable_url)):
        if is_unset(slot):
            continue
        candidates.append(
            ForwardCandidate(label=label, url=CallbackUrl(slot.get_secret_value().strip()))
        )

    return candidates
