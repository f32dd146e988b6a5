"""
Experiment Variant Assigner

Deterministic split of subjects (users, sessions, visitors) between the two
arms of an experiment. The same subject always lands in the same arm of the
same experiment, and buckets are uniform over 0..99 so a split of N sends
about N% of subjects to the original.

bucket = int(md5(f"{subject_id}:{experiment_id}").hexdigest()[:8], 16) % 100

This is the only assignment hash in the engine; any offline re-derivation of
assignments must call assign() as well.
"""

import hashlib
from typing import Any

from adpulse.models import VariantName


def bucket_for(subject_id: str, experiment_id: str) -> int:
    """Bucket in 0..99 for a subject within an experiment."""
    digest = hashlib.md5(f"{subject_id}:{experiment_id}".encode('utf-8')).hexdigest()
    return int(digest[:8], 16) % 100


def assign(subject_id: str, experiment: Any) -> VariantName:
    """
    Assign a subject to an experiment arm.

    Args:
        subject_id: Stable identifier of the subject.
        experiment: An Experiment, or any object with `id` and
            `split.original` (percent of subjects sent to the original).

    Returns:
        VariantName.ORIGINAL when the bucket is below split.original,
        otherwise VariantName.VARIANT.

    Example:
        >>> assign('user-1', experiment) == assign('user-1', experiment)
        True
    """
    if bucket_for(str(subject_id), str(experiment.id)) < experiment.split.original:
        return VariantName.ORIGINAL
    return VariantName.VARIANT
