import resource
from enum import Enum
from typing import NamedTuple


class LimitType(Enum):
	Files = resource.RLIMIT_NOFILE


# Each connection and each file being served holds a descriptor, so the
# server raises its soft limit up to this value at most.
MAXIMUM_LIMITS: dict[LimitType, int] = {
	LimitType.Files: 10 * 10240,
}


class Limit(NamedTuple):
	type: LimitType
	soft: int
	hard: int


def limit(scope: LimitType) -> Limit:
	return Limit(scope, *resource.getrlimit(scope.value))


def unlimit(scope: LimitType, *, maximum: int | None = 0) -> int | bool:
	"""Raises the soft limit of the given resource to its hard limit,
	capped to `maximum` (the default cap when `0`, none when `None`).
	Returns the new limit, or `False` when it could not be changed."""
	lm = limit(scope)
	if lm.soft == resource.RLIM_INFINITY:
		return lm.soft
	maximum = MAXIMUM_LIMITS.get(scope) if maximum == 0 else maximum
	target: int = lm.hard
	if maximum and (target == resource.RLIM_INFINITY or target > maximum):
		target = maximum
	if target != resource.RLIM_INFINITY and target <= lm.soft:
		return lm.soft
	try:
		resource.setrlimit(scope.value, (target, lm.hard))
		return target
	except (ValueError, OSError):
		return False


# EOF
