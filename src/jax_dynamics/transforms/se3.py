"""SE(3) and se(3) Lie group operations in JAX.

Rigid transforms are 4x4 homogeneous matrices. Twists, screw axes and
wrenches are 6-vectors ordered (angular, linear):

    twist  = [wx, wy, wz, vx, vy, vz]
    wrench = [tx, ty, tz, fx, fy, fz]

With that ordering a wrench is the dual of a twist, so a wrench changes frame
with the transpose of the same Adjoint that moves twists. All functions are
pure and JIT-able.
"""


import jax
import jax.numpy as jnp

from . import so3

Array = jax.Array


def from_position_and_rotation(p: Array, R: Array) -> Array:
    """Pose with rotation ``R`` (..., 3, 3) and translation ``p`` (..., 3),
    broadcast to a common batch shape."""
    p, R = jnp.asarray(p), jnp.asarray(R)
    batch = jnp.broadcast_shapes(p.shape[:-1], R.shape[:-2])
    dtype = jnp.result_type(p, R, float)

    upper = jnp.concatenate([
        jnp.broadcast_to(R, batch + (3, 3)),
        jnp.broadcast_to(p, batch + (3,))[..., None],
    ], axis=-1).astype(dtype)
    last_row = jnp.broadcast_to(jnp.array([0.0, 0.0, 0.0, 1.0], dtype=dtype), batch + (1, 4))
    return jnp.concatenate([upper, last_row], axis=-2)


def from_position(p: Array) -> Array:
    """Pure translation."""
    p = jnp.asarray(p, dtype=float)
    return from_position_and_rotation(p, jnp.eye(3, dtype=p.dtype))


def exp(twist: Array) -> Array:
    """
    SE(3) exponential map: twist [w, v] to transformation matrix.

    Small rotation angles use Taylor expansions of the V-matrix coefficients.

    Args:
        twist: (..., 6) array of twists.

    Returns:
        (..., 4, 4) array of transformation matrices.
    """
    w, v = twist[..., :3], twist[..., 3:]
    angle_sq = jnp.sum(w * w, axis=-1, keepdims=True)
    is_small_angle = angle_sq < 1e-12

    safe_angle_sq = jnp.where(is_small_angle, 1.0, angle_sq)
    angle = jnp.sqrt(safe_angle_sq)

    R = so3.exp(w)

    # V = I + B*K + C*K^2, B = (1 - cos t)/t^2, C = (t - sin t)/t^3
    B = jnp.where(is_small_angle, 0.5 - angle_sq / 24.0,
                  (1.0 - jnp.cos(angle)) / safe_angle_sq)
    C = jnp.where(is_small_angle, 1.0 / 6.0 - angle_sq / 120.0,
                  (angle - jnp.sin(angle)) / (safe_angle_sq * angle))

    K = so3.skew_symmetric(w)
    I = jnp.broadcast_to(jnp.eye(3, dtype=twist.dtype), K.shape)
    V = I + B[..., None] * K + C[..., None] * jnp.matmul(K, K)

    t = jnp.einsum("...ij,...j->...i", V, v)

    return from_position_and_rotation(t, R)


def log(T: Array) -> Array:
    """
    SE(3) logarithm map: transformation matrix to twist [w, v].

    Args:
        T: (..., 4, 4) array of transformation matrices.

    Returns:
        (..., 6) array of twists.
    """
    R, t = T[..., :3, :3], T[..., :3, 3]

    w = so3.log(R)
    angle_sq = jnp.sum(w * w, axis=-1, keepdims=True)
    is_small_angle = angle_sq < 1e-12
    angle = jnp.sqrt(jnp.where(is_small_angle, 1.0, angle_sq))

    K = so3.skew_symmetric(w)

    # V^-1 = I - K/2 + D*K^2, D = (1 - (t/2) cot(t/2)) / t^2 -> 1/12 as t -> 0
    half_angle = angle / 2.0
    D = jnp.where(is_small_angle, 1.0 / 12.0,
                  (1.0 - half_angle * jnp.cos(half_angle) / jnp.sin(half_angle)) / (angle * angle))

    I = jnp.broadcast_to(jnp.eye(3, dtype=T.dtype), K.shape)
    V_inv = I - 0.5 * K + D[..., None] * jnp.matmul(K, K)

    v = jnp.einsum("...ij,...j->...i", V_inv, t)

    return jnp.concatenate([w, v], axis=-1)


def screw_exp(screw_axis: Array, theta: Array) -> Array:
    """
    Closed-form exponential of a unit screw axis scaled by a joint coordinate.

    For a revolute screw (unit angular part) this is a rotation by ``theta``
    about the axis line; for a prismatic screw (zero angular part, unit linear
    part) it is a translation by ``theta`` along the axis. Unlike ``exp`` it
    never takes the norm of the scaled twist, so it is smooth in ``theta``.

    Args:
        screw_axis: (6,) unit screw axis [w, v]
        theta: scalar joint coordinate (angle in rad or distance in m)

    Returns:
        (4, 4) transformation matrix
    """
    w, v = screw_axis[:3], screw_axis[3:]
    K = so3.skew_symmetric(w)
    K_sq = jnp.matmul(K, K)
    I = jnp.eye(3, dtype=screw_axis.dtype)

    s, c = jnp.sin(theta), jnp.cos(theta)
    R = I + s * K + (1.0 - c) * K_sq
    G = theta * I + (1.0 - c) * K + (theta - s) * K_sq

    return from_position_and_rotation(jnp.matmul(G, v), R)


def multiply(T1: Array, T2: Array) -> Array:
    """Compose two transforms, T1 @ T2."""
    return jnp.matmul(T1, T2)


def inverse(T: Array) -> Array:
    """Closed-form inverse [[R^T, -R^T t], [0, 1]]."""
    R_t = so3.inverse(get_rotation(T))
    return from_position_and_rotation(-so3.apply(R_t, get_position(T)), R_t)


def between(T1: Array, T2: Array) -> Array:
    """Relative transform T1^-1 @ T2 (pose of frame 2 seen from frame 1)."""
    return jnp.matmul(inverse(T1), T2)


def apply(T: Array, points: Array) -> Array:
    """
    Map points from the frame of ``T`` into its reference frame, R p + t.

    ``points`` is a single (..., 3) point or a stack of shape (..., N, 3).
    """
    points = jnp.asarray(points)
    t = get_position(T)
    if points.ndim != T.ndim - 1:
        t = t[..., None, :]
    return so3.apply(get_rotation(T), points) + t


def get_position(T: Array) -> Array:
    """Extract the (..., 3) translation."""
    return T[..., :3, 3]


def get_rotation(T: Array) -> Array:
    """Extract the (..., 3, 3) rotation."""
    return T[..., :3, :3]


def adjoint(T: Array) -> Array:
    """
    Adjoint matrix of an SE(3) transform.

    Maps a twist expressed in frame b to the same twist expressed in frame a
    when T is the pose of b in a: ``xi_a = adjoint(aTb) @ xi_b``.

    Args:
        T: (..., 4, 4) transformation matrix

    Returns:
        (..., 6, 6) matrix [[R, 0], [[t]_x R, R]]
    """
    R = T[..., :3, :3]
    t = T[..., :3, 3]

    t_skew = so3.skew_symmetric(t)
    zeros = jnp.zeros_like(R)

    top = jnp.concatenate([R, zeros], axis=-1)
    bottom = jnp.concatenate([jnp.matmul(t_skew, R), R], axis=-1)

    return jnp.concatenate([top, bottom], axis=-2)


def ad(twist: Array) -> Array:
    """
    Lie algebra adjoint (the twist cross-product operator).

    Args:
        twist: (..., 6) twist [w, v]

    Returns:
        (..., 6, 6) matrix [[w]_x, 0], [[v]_x, [w]_x]]
    """
    w_skew = so3.skew_symmetric(twist[..., :3])
    v_skew = so3.skew_symmetric(twist[..., 3:])
    zeros = jnp.zeros_like(w_skew)

    top = jnp.concatenate([w_skew, zeros], axis=-1)
    bottom = jnp.concatenate([v_skew, w_skew], axis=-1)

    return jnp.concatenate([top, bottom], axis=-2)


def lie_bracket(xi: Array, eta: Array) -> Array:
    """Lie bracket [xi, eta] = ad(xi) @ eta."""
    return jnp.einsum("...ij,...j->...i", ad(xi), eta)


def transform_twist(T: Array, twist: Array) -> Array:
    """Express a twist given in frame b in frame a, with T = aTb."""
    return jnp.einsum("...ij,...j->...i", adjoint(T), twist)


def transform_wrench(T: Array, wrench: Array) -> Array:
    """
    Express a wrench given in frame a in frame b, with T = aTb.

    Dual of ``transform_twist``: uses the transpose of the same Adjoint.
    """
    return jnp.einsum("...ji,...j->...i", adjoint(T), wrench)
