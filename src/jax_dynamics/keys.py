"""Variable keys shared by the graph builder and result read-back.

Every optimization variable is identified by a Python int that packs a
role character and up to two entity ids plus a time index into disjoint bit
fields:

    bits 56..63   role character
    bits 40..55   first id  (link, joint or phase)
    bits 24..39   second id (joint id of a wrench)
    bits  0..23   time index

Keys of different roles can never collide, and ``decode_key`` recovers the
role, ids and time for diagnostics.
"""

import enum
from typing import NamedTuple, Tuple

_ID_BITS = 16
_TIME_BITS = 24
_MAX_ID = (1 << _ID_BITS) - 1
_MAX_TIME = (1 << _TIME_BITS) - 1

_SECOND_ID_SHIFT = _TIME_BITS
_FIRST_ID_SHIFT = _TIME_BITS + _ID_BITS
_ROLE_SHIFT = _TIME_BITS + 2 * _ID_BITS


class Role(enum.Enum):
    POSE = "p"
    TWIST = "V"
    TWIST_ACCEL = "A"
    WRENCH = "F"
    TORQUE = "T"
    JOINT_ANGLE = "q"
    JOINT_VEL = "v"
    JOINT_ACCEL = "a"
    PHASE_DURATION = "t"


_ROLE_BY_CHAR = {role.value: role for role in Role}


class DynamicsSymbol(NamedTuple):
    """Decoded form of a variable key."""
    role: Role
    ids: Tuple[int, ...]
    time: int

    def __str__(self) -> str:
        if self.role is Role.PHASE_DURATION:
            return f"dt{self.ids[0]}"
        ids = "_".join(str(i) for i in self.ids)
        return f"{self.role.value}{ids}_{self.time}"


def _encode(role: Role, first: int, second: int, t: int) -> int:
    for value, limit, what in ((first, _MAX_ID, "id"), (second, _MAX_ID, "id"),
                               (t, _MAX_TIME, "time index")):
        if not 0 <= value <= limit:
            raise ValueError(f"{role.name.lower()} key {what} {value} outside [0, {limit}]")
    return ((ord(role.value) << _ROLE_SHIFT) | (first << _FIRST_ID_SHIFT)
            | (second << _SECOND_ID_SHIFT) | t)


def pose_key(link_id: int, t: int) -> int:
    return _encode(Role.POSE, link_id, 0, t)


def twist_key(link_id: int, t: int) -> int:
    return _encode(Role.TWIST, link_id, 0, t)


def twist_accel_key(link_id: int, t: int) -> int:
    return _encode(Role.TWIST_ACCEL, link_id, 0, t)


def wrench_key(link_id: int, joint_id: int, t: int) -> int:
    """Wrench exerted on link ``link_id`` by joint ``joint_id``."""
    return _encode(Role.WRENCH, link_id, joint_id, t)


def torque_key(joint_id: int, t: int) -> int:
    return _encode(Role.TORQUE, joint_id, 0, t)


def joint_angle_key(joint_id: int, t: int) -> int:
    return _encode(Role.JOINT_ANGLE, joint_id, 0, t)


def joint_vel_key(joint_id: int, t: int) -> int:
    return _encode(Role.JOINT_VEL, joint_id, 0, t)


def joint_accel_key(joint_id: int, t: int) -> int:
    return _encode(Role.JOINT_ACCEL, joint_id, 0, t)


def phase_key(phase: int) -> int:
    """Duration of one time step in phase ``phase``."""
    return _encode(Role.PHASE_DURATION, phase, 0, 0)


def decode_key(key: int) -> DynamicsSymbol:
    """Recover role, ids and time index from a key."""
    try:
        role = _ROLE_BY_CHAR[chr(key >> _ROLE_SHIFT)]
    except (KeyError, ValueError, OverflowError):
        raise ValueError(f"{key} is not a dynamics variable key")
    first = (key >> _FIRST_ID_SHIFT) & _MAX_ID
    second = (key >> _SECOND_ID_SHIFT) & _MAX_ID
    t = key & _MAX_TIME
    if role is Role.WRENCH:
        return DynamicsSymbol(role, (first, second), t)
    return DynamicsSymbol(role, (first,), t)


def key_to_str(key: int) -> str:
    """Human-readable key, e.g. ``p1_0``, ``F1_0_3`` or ``dt2``."""
    return str(decode_key(key))
