"""Tests for individual factors and factor graphs."""

import jax
import jax.numpy as jnp
import numpy as np
import pytest

from jax_dynamics.core import Link
from jax_dynamics.errors import UnsupportedLinkDegreeError
from jax_dynamics.factors import (
    Factor,
    FactorGraph,
    contact_height_factor,
    euler_factor,
    euler_phase_factor,
    joint_limit_factor,
    min_torque_factor,
    planar_selection,
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
)
from jax_dynamics.keys import (
    joint_angle_key,
    phase_key,
    pose_key,
    torque_key,
    twist_accel_key,
    twist_key,
    wrench_key,
)
from jax_dynamics.transforms import se3, so3

GRAVITY = jnp.array([0.0, 0.0, -9.8])


def _hanging_values(robot, t=0):
    """l2 hanging still under gravity, held by j1."""
    l1, l2 = robot.get_link_by_name("l1"), robot.get_link_by_name("l2")
    j1 = robot.get_joint_by_name("j1")
    return {
        pose_key(l1.id, t): l1.com_pose,
        pose_key(l2.id, t): l2.com_pose,
        twist_key(l2.id, t): jnp.zeros(6),
        twist_accel_key(l2.id, t): jnp.zeros(6),
        wrench_key(l2.id, j1.id, t): jnp.array([0.0, 0.0, 0.0, 0.0, 0.0, 147.0]),
        wrench_key(l1.id, j1.id, t): jnp.array([0.0, 0.0, 0.0, 0.0, 0.0, -147.0]),
        joint_angle_key(j1.id, t): jnp.asarray(0.0),
        torque_key(j1.id, t): jnp.asarray(0.0),
    }


# Factor and FactorGraph containers
def test_prior_factor_errors():
    factor = prior_factor(7, jnp.array([1.0, 2.0]), sigma=0.5)
    values = {7: jnp.array([2.0, 0.0])}

    np.testing.assert_allclose(factor.unwhitened_error(values), jnp.array([1.0, -2.0]))
    np.testing.assert_allclose(factor.whitened_error(values), jnp.array([2.0, -4.0]))
    assert float(factor.error(values)) == pytest.approx(10.0)


def test_scalar_residuals_are_vectors():
    factor = prior_factor(1, 3.0, sigma=1.0)
    assert factor.unwhitened_error({1: jnp.asarray(5.0)}).shape == (1,)


def test_pose_prior_factor():
    prior = se3.from_position(jnp.array([1.0, 0.0, 0.0]))
    factor = pose_prior_factor(3, prior, sigma=1.0)

    np.testing.assert_allclose(factor.unwhitened_error({3: prior}), jnp.zeros(6), atol=1e-12)
    moved = prior @ se3.from_position(jnp.array([0.0, 0.5, 0.0]))
    np.testing.assert_allclose(factor.unwhitened_error({3: moved}),
                               jnp.array([0.0, 0.0, 0.0, 0.0, 0.5, 0.0]), atol=1e-12)


def test_factor_graph_composition():
    a = FactorGraph((prior_factor(1, 0.0, 1.0), prior_factor(2, 0.0, 1.0)))
    b = FactorGraph((min_torque_factor(2, 1.0),))

    combined = a + b
    assert len(combined) == 3
    assert len(a) == 2
    assert combined.keys() == (1, 2)
    assert combined.family_counts() == {"prior": 2, "min_torque": 1}
    assert combined[2].family == "min_torque"
    assert [factor.family for factor in combined] == ["prior", "prior", "min_torque"]
    assert FactorGraph.concatenate([a, b, FactorGraph()]) == combined

    values = {1: jnp.asarray(1.0), 2: jnp.asarray(2.0)}
    assert float(combined.error(values)) == pytest.approx(0.5 * (1.0 + 4.0 + 4.0))

    with pytest.raises(TypeError):
        a + [prior_factor(3, 0.0, 1.0)]


def test_factor_is_immutable():
    factor = prior_factor(1, 0.0, 1.0)
    with pytest.raises(AttributeError):
        factor.sigma = 2.0


# Kinematics
def test_pose_factor(simple_robot):
    j1 = simple_robot.get_joint_by_name("j1")
    l1, l2 = j1.parent_link, j1.child_link
    factor = pose_factor(j1, 0, sigma=1.0)
    assert factor.keys == (pose_key(l1.id, 0), pose_key(l2.id, 0), joint_angle_key(j1.id, 0))

    q = jnp.pi / 4
    # l2's COM swings about the x axis through the joint at z = 2
    pose_l2 = se3.from_position_and_rotation(
        jnp.array([0.0, -jnp.sin(q), 2.0 + jnp.cos(q)]), so3.exp(jnp.array([q, 0.0, 0.0])))
    values = {factor.keys[0]: l1.com_pose, factor.keys[1]: pose_l2, factor.keys[2]: jnp.asarray(q)}
    np.testing.assert_allclose(factor.unwhitened_error(values), jnp.zeros(6), atol=1e-10)

    values[factor.keys[2]] = jnp.asarray(0.0)
    assert float(factor.error(values)) > 1e-3


def test_pose_factor_jacobian_is_finite(simple_robot):
    j1 = simple_robot.get_joint_by_name("j1")
    factor = pose_factor(j1, 0, sigma=1.0)
    pose_l1, pose_l2 = j1.parent_link.com_pose, j1.child_link.com_pose

    J = jax.jacfwd(lambda q: factor.residual(pose_l1, pose_l2, q))(0.0)
    assert jnp.all(jnp.isfinite(J))
    # Holding the child at rest, the error grows along the screw axis
    np.testing.assert_allclose(J, simple_robot.screw_axes()["j1"], atol=1e-8)


def test_twist_factor(simple_robot):
    j1 = simple_robot.get_joint_by_name("j1")
    S = simple_robot.screw_axes()["j1"]
    factor = twist_factor(j1, 0, sigma=1.0)
    p_twist, c_twist, q, qv = factor.keys

    values = {p_twist: jnp.zeros(6), c_twist: 2.0 * S, q: jnp.asarray(0.3), qv: jnp.asarray(2.0)}
    np.testing.assert_allclose(factor.unwhitened_error(values), jnp.zeros(6), atol=1e-12)

    values[qv] = jnp.asarray(1.0)
    np.testing.assert_allclose(factor.unwhitened_error(values), -S, atol=1e-12)


def test_twist_accel_factor(simple_robot):
    j1 = simple_robot.get_joint_by_name("j1")
    S = simple_robot.screw_axes()["j1"]
    factor = twist_accel_factor(j1, 0, sigma=1.0)
    c_twist, p_accel, c_accel, q, qv, qa = factor.keys

    # With a fixed parent the bias term ad(S qv) S qv vanishes
    values = {c_twist: 2.0 * S, p_accel: jnp.zeros(6), c_accel: 3.0 * S,
              q: jnp.asarray(0.1), qv: jnp.asarray(2.0), qa: jnp.asarray(3.0)}
    np.testing.assert_allclose(factor.unwhitened_error(values), jnp.zeros(6), atol=1e-12)


# Dynamics
def test_wrench_factor_hanging_link(simple_robot):
    l2 = simple_robot.get_link_by_name("l2")
    j1 = simple_robot.get_joint_by_name("j1")
    factor = wrench_factor(l2, [wrench_key(l2.id, j1.id, 0)], 0, sigma=1.0, gravity=GRAVITY)
    assert factor.keys == (twist_key(l2.id, 0), twist_accel_key(l2.id, 0),
                           wrench_key(l2.id, j1.id, 0), pose_key(l2.id, 0))

    values = _hanging_values(simple_robot)
    np.testing.assert_allclose(factor.unwhitened_error(values), jnp.zeros(6), atol=1e-10)


def test_wrench_factor_without_gravity(simple_robot):
    l2 = simple_robot.get_link_by_name("l2")
    factor = wrench_factor(l2, [wrench_key(l2.id, 0, 0)], 0, sigma=1.0)
    values = _hanging_values(simple_robot)
    np.testing.assert_allclose(factor.unwhitened_error(values),
                               jnp.array([0.0, 0.0, 0.0, 0.0, 0.0, -147.0]), atol=1e-10)


def test_wrench_factor_spinning_body():
    """Gyroscopic term: a body spinning about a principal axis needs no torque."""
    link = Link(0, "rotor", 2.0, jnp.diag(jnp.array([1.0, 2.0, 3.0])), jnp.eye(4), jnp.eye(4))
    factor = wrench_factor(link, [], 0, sigma=1.0)
    values = {twist_key(0, 0): jnp.array([0.0, 0.0, 5.0, 0.0, 0.0, 0.0]),
              twist_accel_key(0, 0): jnp.zeros(6),
              pose_key(0, 0): jnp.eye(4)}
    np.testing.assert_allclose(factor.unwhitened_error(values), jnp.zeros(6), atol=1e-12)


@pytest.mark.parametrize("degree", [0, 1, 2, 3, 4])
def test_wrench_factor_supported_degrees(simple_robot, degree):
    l2 = simple_robot.get_link_by_name("l2")
    wrench_keys = [wrench_key(l2.id, j, 0) for j in range(degree)]
    factor = wrench_factor(l2, wrench_keys, 0, sigma=1.0)
    assert len(factor.keys) == degree + 3


def test_wrench_factor_degree_five(simple_robot):
    l2 = simple_robot.get_link_by_name("l2")
    with pytest.raises(UnsupportedLinkDegreeError):
        wrench_factor(l2, [wrench_key(l2.id, j, 0) for j in range(5)], 0, sigma=1.0)


def test_wrench_equivalence_factor(simple_robot):
    j1 = simple_robot.get_joint_by_name("j1")
    factor = wrench_equivalence_factor(j1, 0, sigma=1.0)
    np.testing.assert_allclose(factor.unwhitened_error(_hanging_values(simple_robot)),
                               jnp.zeros(6), atol=1e-10)


def test_torque_factor(simple_robot):
    j1 = simple_robot.get_joint_by_name("j1")
    factor = torque_factor(j1, 0, sigma=1.0)
    values = _hanging_values(simple_robot)
    np.testing.assert_allclose(factor.unwhitened_error(values), jnp.zeros(1), atol=1e-12)

    # A pure torque about x through the COM
    values[wrench_key(j1.child_link.id, j1.id, 0)] = jnp.array([4.0, 0.0, 0.0, 0.0, 0.0, 0.0])
    np.testing.assert_allclose(factor.unwhitened_error(values), jnp.array([4.0]), atol=1e-12)


@pytest.mark.parametrize("axis, rows", [
    ((1.0, 0.0, 0.0), (1, 2, 3)),
    ((0.0, 1.0, 0.0), (0, 2, 4)),
    ((0.0, 0.0, 1.0), (0, 1, 5)),
])
def test_planar_selection_canonical_axes(axis, rows):
    expected = np.zeros((3, 6))
    for row, column in enumerate(rows):
        expected[row, column] = 1.0
    np.testing.assert_allclose(np.abs(planar_selection(axis)), expected, atol=1e-12)


def test_planar_selection_rejects_zero_axis():
    with pytest.raises(ValueError):
        planar_selection((0.0, 0.0, 0.0))


def test_wrench_planar_factor(simple_robot):
    j1 = simple_robot.get_joint_by_name("j1")
    factor = wrench_planar_factor(j1, 0, 1.0, (1.0, 0.0, 0.0))
    in_plane = jnp.array([5.0, 0.0, 0.0, 0.0, 2.0, 3.0])
    out_of_plane = jnp.array([0.0, 1.0, 0.0, 4.0, 0.0, 0.0])

    np.testing.assert_allclose(factor.unwhitened_error({factor.keys[0]: in_plane}),
                               jnp.zeros(3), atol=1e-12)
    assert float(factor.error({factor.keys[0]: out_of_plane})) == pytest.approx(0.5 * 17.0)


# Collocation
def test_euler_factor():
    factor = euler_factor(1, 2, 3, dt=0.1, sigma=1.0)
    values = {1: jnp.asarray(1.0), 2: jnp.asarray(1.2), 3: jnp.asarray(2.0)}
    np.testing.assert_allclose(factor.unwhitened_error(values), jnp.zeros(1), atol=1e-12)
    values[2] = jnp.asarray(1.0)
    np.testing.assert_allclose(factor.unwhitened_error(values), jnp.array([0.2]), atol=1e-12)


def test_trapezoidal_factor():
    factor = trapezoidal_factor(1, 2, 3, 4, dt=0.1, sigma=1.0)
    values = {1: jnp.asarray(1.0), 2: jnp.asarray(1.3), 3: jnp.asarray(2.0), 4: jnp.asarray(4.0)}
    np.testing.assert_allclose(factor.unwhitened_error(values), jnp.zeros(1), atol=1e-12)


def test_phase_factors_read_step_from_values():
    dt = phase_key(0)
    euler = euler_phase_factor(1, 2, 3, dt, sigma=1.0)
    trapezoidal = trapezoidal_phase_factor(1, 2, 3, 4, dt, sigma=1.0)
    assert euler.keys[-1] == dt
    assert trapezoidal.keys[-1] == dt

    values = {1: jnp.asarray(1.0), 2: jnp.asarray(1.6), 3: jnp.asarray(2.0), 4: jnp.asarray(4.0),
              dt: jnp.asarray(0.3)}
    np.testing.assert_allclose(euler.unwhitened_error(values), jnp.zeros(1), atol=1e-12)
    np.testing.assert_allclose(trapezoidal.unwhitened_error(values), jnp.array([0.3]), atol=1e-12)

    # The residual is bilinear in step size and rate
    J = jax.jacfwd(lambda h: euler.residual(1.0, 1.6, 2.0, h))(0.3)
    assert float(J) == pytest.approx(2.0)


# Objectives
def test_min_torque_factor():
    factor = min_torque_factor(torque_key(0, 0), sigma=2.0)
    np.testing.assert_allclose(factor.whitened_error({factor.keys[0]: jnp.asarray(3.0)}),
                               jnp.array([1.5]))


@pytest.mark.parametrize("q, expected", [(0.0, 0.0), (1.0, 0.1), (-1.5, 0.6), (0.85, 0.0)])
def test_joint_limit_factor(q, expected):
    factor = joint_limit_factor(joint_angle_key(0, 0), -1.0, 1.0, 0.1, sigma=1.0)
    np.testing.assert_allclose(factor.unwhitened_error({factor.keys[0]: jnp.asarray(q)}),
                               jnp.array([expected]), atol=1e-12)


def test_joint_limit_factor_unbounded():
    factor = joint_limit_factor(joint_angle_key(0, 0), -np.inf, np.inf, 0.0, sigma=1.0)
    np.testing.assert_allclose(factor.unwhitened_error({factor.keys[0]: jnp.asarray(1e6)}),
                               jnp.zeros(1))


def test_contact_height_factor():
    key = pose_key(0, 0)
    contact = jnp.array([0.0, 0.0, 1.0])
    factor = contact_height_factor(key, contact, sigma=1.0)

    upright = se3.from_position(jnp.array([0.0, 0.0, 2.0]))
    np.testing.assert_allclose(factor.unwhitened_error({key: upright}), jnp.array([3.0]), atol=1e-12)

    flipped = se3.from_position_and_rotation(jnp.array([0.0, 0.0, 2.0]),
                                             so3.exp(jnp.array([jnp.pi, 0.0, 0.0])))
    np.testing.assert_allclose(factor.unwhitened_error({key: flipped}), jnp.array([1.0]), atol=1e-12)

    raised = contact_height_factor(key, contact, sigma=1.0, ground_height=1.0)
    np.testing.assert_allclose(raised.unwhitened_error({key: flipped}), jnp.zeros(1), atol=1e-12)


def test_contact_height_factor_needs_gravity():
    with pytest.raises(ValueError):
        contact_height_factor(pose_key(0, 0), jnp.zeros(3), sigma=1.0, gravity=(0.0, 0.0, 0.0))


def test_custom_factor():
    """Any pure residual over keyed values can be wrapped."""
    factor = Factor("custom", (1, 2), lambda a, b: a - 2.0 * b, sigma=1.0)
    np.testing.assert_allclose(factor.unwhitened_error({1: jnp.asarray(4.0), 2: jnp.asarray(2.0)}),
                               jnp.zeros(1))
