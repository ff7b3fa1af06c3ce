"""Builder for kinematics and dynamics factor graphs.

Every function here is a stateless transformation from a robot, a time range
and options to a FactorGraph (or a Values dict); nothing is cached between
calls, so instants and phases can be built independently and concatenated.

Per-instant families:
    q_factors          pose factors, fixed-link pose priors
    v_factors          twist factors, fixed-link zero-twist priors
    a_factors          twist-acceleration factors, fixed-link zero-accel priors
    dynamics_factors   wrench balance, wrench equivalence, torque, planar

The solver is not part of this module: the graphs and initial values it
returns are consumed by any JAX-based nonlinear least-squares optimizer.
"""

import enum
import logging
from typing import Mapping, Optional, Sequence

import jax.numpy as jnp
import numpy as np
from jax import Array

from .core.robot import Robot
from .errors import UnsupportedCollocationError
from .factors import (
    FactorGraph,
    Values,
    euler_factor,
    euler_phase_factor,
    joint_limit_factor,
    min_torque_factor,
    pose_factor,
    pose_prior_factor,
    prior_factor,
    torque_factor,
    trapezoidal_factor,
    trapezoidal_phase_factor,
    twist_accel_factor,
    twist_factor,
    wrench_equivalence_factor,
    wrench_factor,
    wrench_planar_factor,
    zero_twist_accel_prior,
    zero_twist_prior,
)
from .keys import (
    decode_key,
    joint_accel_key,
    joint_angle_key,
    joint_vel_key,
    key_to_str,
    phase_key,
    pose_key,
    torque_key,
    twist_accel_key,
    twist_key,
    wrench_key,
)
from .settings import OptimizerSetting

logger = logging.getLogger(__name__)


class CollocationScheme(enum.Enum):
    EULER = "euler"
    RUNGE_KUTTA = "runge_kutta"
    TRAPEZOIDAL = "trapezoidal"
    HERMITE_SIMPSON = "hermite_simpson"


_DEFAULT_SETTINGS = OptimizerSetting()


# One instant

def q_factors(robot: Robot, t: int, settings: OptimizerSetting = _DEFAULT_SETTINGS) -> FactorGraph:
    """Pose factors for every joint and pose priors for fixed links."""
    factors = []
    for link in robot.links:
        if link.is_fixed:
            factors.append(pose_prior_factor(pose_key(link.id, t), link.fixed_pose,
                                             settings.bp_sigma))
    for joint in robot.joints:
        factors.append(pose_factor(joint, t, settings.p_sigma))
    return FactorGraph(tuple(factors))


def v_factors(robot: Robot, t: int, settings: OptimizerSetting = _DEFAULT_SETTINGS) -> FactorGraph:
    """Twist factors for every joint and zero-twist priors for fixed links."""
    factors = []
    for link in robot.links:
        if link.is_fixed:
            factors.append(zero_twist_prior(link.id, t, settings.bv_sigma))
    for joint in robot.joints:
        factors.append(twist_factor(joint, t, settings.v_sigma))
    return FactorGraph(tuple(factors))


def a_factors(robot: Robot, t: int, settings: OptimizerSetting = _DEFAULT_SETTINGS) -> FactorGraph:
    """Twist-acceleration factors for every joint and zero-acceleration
    priors for fixed links."""
    factors = []
    for link in robot.links:
        if link.is_fixed:
            factors.append(zero_twist_accel_prior(link.id, t, settings.ba_sigma))
    for joint in robot.joints:
        factors.append(twist_accel_factor(joint, t, settings.a_sigma))
    return FactorGraph(tuple(factors))


def dynamics_factors(
    robot: Robot,
    t: int,
    gravity: Optional[Array] = None,
    planar_axis: Optional[Array] = None,
    settings: OptimizerSetting = _DEFAULT_SETTINGS,
) -> FactorGraph:
    """Wrench-level factors of one instant.

    Args:
        robot: Robot to build factors for.
        t: Time index.
        gravity: (3,) gravity vector in the world frame, or None.
        planar_axis: (3,) normal of the motion plane, or None for spatial
            motion.
        settings: Noise sigmas.

    Raises:
        UnsupportedLinkDegreeError: a non-fixed link has more than four
            incident joints.
    """
    factors = []
    for link in robot.links:
        if link.is_fixed:
            continue
        wrench_keys = [wrench_key(link.id, joint.id, t) for joint in link.joints]
        factors.append(wrench_factor(link, wrench_keys, t, settings.f_sigma, gravity))
    for joint in robot.joints:
        factors.append(wrench_equivalence_factor(joint, t, settings.f_sigma))
        factors.append(torque_factor(joint, t, settings.t_sigma))
        if planar_axis is not None:
            factors.append(wrench_planar_factor(joint, t, settings.planar_sigma, planar_axis))
    return FactorGraph(tuple(factors))


def dynamics_factor_graph(
    robot: Robot,
    t: int,
    gravity: Optional[Array] = None,
    planar_axis: Optional[Array] = None,
    settings: OptimizerSetting = _DEFAULT_SETTINGS,
) -> FactorGraph:
    """All kinematics and dynamics factors of one instant."""
    graph = (q_factors(robot, t, settings)
             + v_factors(robot, t, settings)
             + a_factors(robot, t, settings)
             + dynamics_factors(robot, t, gravity, planar_axis, settings))
    logger.debug("Instant %d of '%s': %d factors", t, robot.name, len(graph))
    return graph


# Time integration

def _check_scheme(scheme: CollocationScheme) -> CollocationScheme:
    scheme = CollocationScheme(scheme)
    if scheme not in (CollocationScheme.EULER, CollocationScheme.TRAPEZOIDAL):
        raise UnsupportedCollocationError(
            f"Collocation scheme '{scheme.value}' is not implemented")
    return scheme


def collocation_factors(
    robot: Robot,
    t: int,
    dt: float,
    scheme: CollocationScheme = CollocationScheme.EULER,
    settings: OptimizerSetting = _DEFAULT_SETTINGS,
) -> FactorGraph:
    """Integration factors between instants ``t`` and ``t + 1`` with a fixed
    step ``dt``: one angle and one velocity factor per joint.

    Raises:
        UnsupportedCollocationError: Runge-Kutta or Hermite-Simpson.
    """
    scheme = _check_scheme(scheme)
    sigma = settings.constrained_sigma
    factors = []
    for joint in robot.joints:
        j = joint.id
        q0, q1 = joint_angle_key(j, t), joint_angle_key(j, t + 1)
        v0, v1 = joint_vel_key(j, t), joint_vel_key(j, t + 1)
        a0, a1 = joint_accel_key(j, t), joint_accel_key(j, t + 1)
        if scheme is CollocationScheme.EULER:
            factors.append(euler_factor(q0, q1, v0, dt, sigma))
            factors.append(euler_factor(v0, v1, a0, dt, sigma))
        else:
            factors.append(trapezoidal_factor(q0, q1, v0, v1, dt, sigma))
            factors.append(trapezoidal_factor(v0, v1, a0, a1, dt, sigma))
    return FactorGraph(tuple(factors))


def multi_phase_collocation_factors(
    robot: Robot,
    t: int,
    phase: int,
    scheme: CollocationScheme = CollocationScheme.EULER,
    settings: OptimizerSetting = _DEFAULT_SETTINGS,
) -> FactorGraph:
    """Like ``collocation_factors`` with the step size taken from the
    ``phase_key(phase)`` variable."""
    scheme = _check_scheme(scheme)
    sigma = settings.constrained_sigma
    dt = phase_key(phase)
    factors = []
    for joint in robot.joints:
        j = joint.id
        q0, q1 = joint_angle_key(j, t), joint_angle_key(j, t + 1)
        v0, v1 = joint_vel_key(j, t), joint_vel_key(j, t + 1)
        a0, a1 = joint_accel_key(j, t), joint_accel_key(j, t + 1)
        if scheme is CollocationScheme.EULER:
            factors.append(euler_phase_factor(q0, q1, v0, dt, sigma))
            factors.append(euler_phase_factor(v0, v1, a0, dt, sigma))
        else:
            factors.append(trapezoidal_phase_factor(q0, q1, v0, v1, dt, sigma))
            factors.append(trapezoidal_phase_factor(v0, v1, a0, a1, dt, sigma))
    return FactorGraph(tuple(factors))


# Trajectories

def trajectory_fg(
    robot: Robot,
    num_steps: int,
    dt: float,
    scheme: CollocationScheme = CollocationScheme.EULER,
    gravity: Optional[Array] = None,
    planar_axis: Optional[Array] = None,
    settings: OptimizerSetting = _DEFAULT_SETTINGS,
) -> FactorGraph:
    """Instants ``0..num_steps`` interleaved with ``num_steps`` collocation
    sets."""
    if num_steps < 0:
        raise ValueError(f"num_steps must be non-negative, got {num_steps}")
    graphs = []
    for t in range(num_steps + 1):
        graphs.append(dynamics_factor_graph(robot, t, gravity, planar_axis, settings))
        if t < num_steps:
            graphs.append(collocation_factors(robot, t, dt, scheme, settings))
    graph = FactorGraph.concatenate(graphs)
    logger.debug("Trajectory of '%s' over %d steps: %d factors",
                 robot.name, num_steps, len(graph))
    return graph


def multi_phase_trajectory_fg(
    robots: Sequence[Robot],
    phase_steps: Sequence[int],
    transition_graphs: Sequence[FactorGraph],
    scheme: CollocationScheme = CollocationScheme.EULER,
    gravity: Optional[Array] = None,
    planar_axis: Optional[Array] = None,
    settings: OptimizerSetting = _DEFAULT_SETTINGS,
) -> FactorGraph:
    """Trajectory made of phases, each with its own robot variant and an
    unknown step duration ``phase_key(phase)``.

    The boundary instant between phase ``k`` and ``k + 1`` is supplied by
    ``transition_graphs[k]`` (e.g. dynamics of a robot with the union of both
    phases' contacts). Time indices run continuously across phases.

    Args:
        robots: Robot variant per phase.
        phase_steps: Number of steps per phase, each at least 1.
        transition_graphs: ``len(robots) - 1`` boundary graphs.
    """
    num_phases = len(robots)
    if num_phases == 0:
        raise ValueError("At least one phase is required")
    if len(phase_steps) != num_phases:
        raise ValueError(
            f"Expected {num_phases} phase step counts, got {len(phase_steps)}")
    if len(transition_graphs) != num_phases - 1:
        raise ValueError(
            f"Expected {num_phases - 1} transition graphs, got {len(transition_graphs)}")
    if any(steps < 1 for steps in phase_steps):
        raise ValueError(f"Every phase needs at least one step, got {list(phase_steps)}")

    t = 0
    graphs = [dynamics_factor_graph(robots[0], t, gravity, planar_axis, settings)]
    for phase in range(num_phases):
        for _ in range(phase_steps[phase] - 1):
            t += 1
            graphs.append(dynamics_factor_graph(robots[phase], t, gravity, planar_axis,
                                                settings))
        t += 1
        if phase == num_phases - 1:
            graphs.append(dynamics_factor_graph(robots[phase], t, gravity, planar_axis,
                                                settings))
        else:
            graphs.append(transition_graphs[phase])

    t = 0
    for phase in range(num_phases):
        for _ in range(phase_steps[phase]):
            graphs.append(multi_phase_collocation_factors(robots[phase], t, phase, scheme,
                                                          settings))
            t += 1

    graph = FactorGraph.concatenate(graphs)
    logger.debug("Multi-phase trajectory with %d phases and %d steps: %d factors",
                 num_phases, sum(phase_steps), len(graph))
    return graph


# Priors and objectives

def _check_joint_vector(robot: Robot, values, what: str) -> np.ndarray:
    values = np.asarray(values, dtype=float)
    if values.ndim != 1:
        raise ValueError(
            f"Expected a flat vector of {what} for '{robot.name}', got shape {values.shape}")
    if values.shape[0] != robot.num_joints:
        raise ValueError(
            f"Expected {robot.num_joints} {what} for '{robot.name}', got {values.shape[0]}")
    return values


def forward_dynamics_priors(
    robot: Robot,
    t: int,
    joint_angles,
    joint_vels,
    torques,
    settings: OptimizerSetting = _DEFAULT_SETTINGS,
) -> FactorGraph:
    """Pin angle, velocity and torque of every joint at instant ``t``.

    The three vectors are in ``robot.joints`` order.
    """
    angles = _check_joint_vector(robot, joint_angles, "joint angles")
    vels = _check_joint_vector(robot, joint_vels, "joint velocities")
    torques = _check_joint_vector(robot, torques, "joint torques")
    sigma = settings.constrained_sigma
    factors = []
    for idx, joint in enumerate(robot.joints):
        factors.append(prior_factor(joint_angle_key(joint.id, t), angles[idx], sigma))
        factors.append(prior_factor(joint_vel_key(joint.id, t), vels[idx], sigma))
        factors.append(prior_factor(torque_key(joint.id, t), torques[idx], sigma))
    return FactorGraph(tuple(factors))


def trajectory_fd_priors(
    robot: Robot,
    num_steps: int,
    joint_angles,
    joint_vels,
    torques_seq: Sequence,
    settings: OptimizerSetting = _DEFAULT_SETTINGS,
) -> FactorGraph:
    """Initial angle and velocity at t=0 and the torque at every instant, to
    drive a whole-trajectory forward simulation.

    ``torques_seq`` holds ``num_steps + 1`` torque vectors.
    """
    angles = _check_joint_vector(robot, joint_angles, "joint angles")
    vels = _check_joint_vector(robot, joint_vels, "joint velocities")
    if len(torques_seq) != num_steps + 1:
        raise ValueError(
            f"Expected {num_steps + 1} torque vectors, got {len(torques_seq)}")
    sigma = settings.constrained_sigma
    factors = []
    for idx, joint in enumerate(robot.joints):
        factors.append(prior_factor(joint_angle_key(joint.id, 0), angles[idx], sigma))
        factors.append(prior_factor(joint_vel_key(joint.id, 0), vels[idx], sigma))
    for t, torques in enumerate(torques_seq):
        torques = _check_joint_vector(robot, torques, f"joint torques at t={t}")
        for idx, joint in enumerate(robot.joints):
            factors.append(prior_factor(torque_key(joint.id, t), torques[idx], sigma))
    return FactorGraph(tuple(factors))


def min_torque_factors(
    robot: Robot, t: int, settings: OptimizerSetting = _DEFAULT_SETTINGS
) -> FactorGraph:
    """Effort penalty on every joint torque at instant ``t``."""
    return FactorGraph(tuple(
        min_torque_factor(torque_key(joint.id, t), settings.min_torque_sigma)
        for joint in robot.joints))


def joint_limit_factors(
    robot: Robot, t: int, settings: OptimizerSetting = _DEFAULT_SETTINGS
) -> FactorGraph:
    """Hinge penalties keeping every joint angle inside its limits."""
    return FactorGraph(tuple(
        joint_limit_factor(joint_angle_key(joint.id, t), joint.lower_limit,
                           joint.upper_limit, joint.limit_threshold, settings.jl_sigma)
        for joint in robot.joints))


# Initial values

def zero_values(robot: Robot, t: int) -> Values:
    """Initial guess for one instant: rest poses, everything else zero."""
    values: Values = {}
    zero6 = jnp.zeros(6)
    for link in robot.links:
        values[pose_key(link.id, t)] = link.com_pose
        values[twist_key(link.id, t)] = zero6
        values[twist_accel_key(link.id, t)] = zero6
    for joint in robot.joints:
        j = joint.id
        values[wrench_key(joint.parent_link.id, j, t)] = zero6
        values[wrench_key(joint.child_link.id, j, t)] = zero6
        values[torque_key(j, t)] = jnp.asarray(0.0)
        values[joint_angle_key(j, t)] = jnp.asarray(0.0)
        values[joint_vel_key(j, t)] = jnp.asarray(0.0)
        values[joint_accel_key(j, t)] = jnp.asarray(0.0)
    return values


def zero_values_trajectory(robot: Robot, num_steps: int, num_phases: int = 0) -> Values:
    """``zero_values`` for instants ``0..num_steps``, plus a zero duration
    for each of ``num_phases`` phases."""
    values: Values = {}
    for t in range(num_steps + 1):
        values.update(zero_values(robot, t))
    for phase in range(num_phases):
        values[phase_key(phase)] = jnp.asarray(0.0)
    return values


def multi_phase_zero_values_trajectory(
    robots: Sequence[Robot],
    phase_steps: Sequence[int],
    dt: float,
) -> Values:
    """Initial guess for ``multi_phase_trajectory_fg``.

    Each instant uses the robot of the phase it belongs to (a boundary
    instant uses the earlier phase), and every phase duration starts at
    ``dt``.
    """
    if len(robots) != len(phase_steps):
        raise ValueError(
            f"Expected {len(robots)} phase step counts, got {len(phase_steps)}")
    values: Values = {}
    t = 0
    values.update(zero_values(robots[0], t))
    for phase, robot in enumerate(robots):
        for _ in range(phase_steps[phase]):
            t += 1
            values.update(zero_values(robot, t))
        values[phase_key(phase)] = jnp.asarray(float(dt))
    return values


# Read-back

def _joint_vector(robot: Robot, values: Mapping[int, Array], key_fn, t: int) -> Array:
    return jnp.array([jnp.reshape(values[key_fn(joint.id, t)], ()) for joint in robot.joints])


def joint_angles(robot: Robot, values: Mapping[int, Array], t: int = 0) -> Array:
    """Joint angles at instant ``t`` in ``robot.joints`` order.

    Raises:
        KeyError: a joint's angle is missing from ``values``.
    """
    return _joint_vector(robot, values, joint_angle_key, t)


def joint_vels(robot: Robot, values: Mapping[int, Array], t: int = 0) -> Array:
    return _joint_vector(robot, values, joint_vel_key, t)


def joint_accels(robot: Robot, values: Mapping[int, Array], t: int = 0) -> Array:
    return _joint_vector(robot, values, joint_accel_key, t)


def joint_torques(robot: Robot, values: Mapping[int, Array], t: int = 0) -> Array:
    return _joint_vector(robot, values, torque_key, t)


# Diagnostics

def describe_values(values: Mapping[int, Array]) -> str:
    """One ``name<TAB>value`` line per variable, sorted by role, ids, time."""
    ordered = sorted(values, key=lambda key: _sort_key(decode_key(key)))
    lines = []
    for key in ordered:
        value = np.asarray(values[key])
        lines.append(f"{key_to_str(key)}\t{np.array2string(value, precision=4)}")
    return "\n".join(lines)


def describe_graph(graph: FactorGraph) -> str:
    """One line per factor: family followed by its variable names."""
    return "\n".join(
        f"{factor.family}\t" + "\t".join(key_to_str(key) for key in factor.keys)
        for factor in graph)


def _sort_key(symbol):
    return (symbol.role.value, symbol.ids, symbol.time)

