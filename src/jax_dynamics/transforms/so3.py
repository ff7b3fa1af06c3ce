"""SO(3) and so(3) Lie group operations in JAX.

Rotations are 3x3 matrices, their tangent vectors are axis-angle 3-vectors.
All functions are pure, JIT-able, and broadcast over leading batch axes.
"""

import jax
import jax.numpy as jnp

Array = jax.Array


def skew_symmetric(v: Array) -> Array:
    """
    Convert 3D vector to skew-symmetric (cross-product) matrix.

    Args:
        v: (..., 3) vector

    Returns:
        (..., 3, 3) matrix K such that K @ u == cross(v, u)
    """
    zeros = jnp.zeros(v.shape[:-1], dtype=v.dtype)

    return jnp.stack([
        jnp.stack([zeros, -v[..., 2], v[..., 1]], axis=-1),
        jnp.stack([v[..., 2], zeros, -v[..., 0]], axis=-1),
        jnp.stack([-v[..., 1], v[..., 0], zeros], axis=-1)
    ], axis=-2)


def exp(log_r: Array) -> Array:
    """
    SO(3) exponential map (Rodrigues' formula).

    Args:
        log_r: (..., 3) array of axis-angle vectors

    Returns:
        (..., 3, 3) array of rotation matrices
    """
    # Work with the squared angle so the map stays differentiable at zero
    angle_sq = jnp.sum(log_r * log_r, axis=-1, keepdims=True)
    small_angle = angle_sq < 1e-12

    safe_angle_sq = jnp.where(small_angle, 1.0, angle_sq)
    angle = jnp.sqrt(safe_angle_sq)

    # R = I + A*K + B*K^2 with A = sin(t)/t and B = (1 - cos(t))/t^2
    A = jnp.where(small_angle, 1.0 - angle_sq / 6.0, jnp.sin(angle) / angle)
    B = jnp.where(small_angle, 0.5 - angle_sq / 24.0, (1.0 - jnp.cos(angle)) / safe_angle_sq)

    K = skew_symmetric(log_r)
    I = jnp.broadcast_to(jnp.eye(3, dtype=log_r.dtype), log_r.shape[:-1] + (3, 3))

    return I + A[..., None] * K + B[..., None] * jnp.matmul(K, K)


def log(R: Array) -> Array:
    """
    SO(3) logarithm map: rotation matrix to axis-angle vector.

    Args:
        R: (..., 3, 3) array of rotation matrices

    Returns:
        (..., 3) array of axis-angle vectors
    """
    trace = jnp.trace(R, axis1=-2, axis2=-1)
    cos_angle = jnp.clip((trace - 1.0) / 2.0, -1.0, 1.0)

    # angle < 1e-6 and pi - angle < 1e-6, tested on the cosine so that arccos
    # is never differentiated at +-1
    small_angle = cos_angle > 1.0 - 5e-13
    near_pi = cos_angle < -1.0 + 5e-13
    safe_cos = jnp.where(small_angle | near_pi, 0.0, cos_angle)
    angle = jnp.arccos(safe_cos)

    skew_part = jnp.stack([
        R[..., 2, 1] - R[..., 1, 2],
        R[..., 0, 2] - R[..., 2, 0],
        R[..., 1, 0] - R[..., 0, 1]
    ], axis=-1)

    # angle / (2 sin(angle)), with its Taylor expansion near zero
    # (angle^2 ~= 3 - trace there)
    scale = jnp.where(small_angle, 0.5 + (3.0 - trace) / 12.0, angle / (2.0 * jnp.sin(angle)))
    w_general = scale[..., None] * skew_part

    # Near pi the skew part vanishes; take the dominant column of (R + I) / 2
    B = (R + jnp.eye(3, dtype=R.dtype)) / 2.0
    diag_vals = jnp.diagonal(B, axis1=-2, axis2=-1)
    max_idx = jnp.argmax(diag_vals, axis=-1)
    axis_pi = jnp.take_along_axis(B, max_idx[..., None, None], axis=-1)[..., 0]
    axis_pi = axis_pi / jnp.linalg.norm(axis_pi, axis=-1, keepdims=True)
    w_pi = jnp.pi * axis_pi

    return jnp.where(near_pi[..., None], w_pi, w_general)


def multiply(R1: Array, R2: Array) -> Array:
    """Compose two rotations, R1 @ R2."""
    return jnp.matmul(R1, R2)


def inverse(R: Array) -> Array:
    """Inverse of a rotation matrix (its transpose)."""
    return jnp.swapaxes(R, -1, -2)


def apply(R: Array, v: Array) -> Array:
    """Rotate a (..., 3) vector or a (..., N, 3) stack of vectors."""
    v = jnp.asarray(v)
    if v.ndim == R.ndim - 1:
        return jnp.einsum('...ij,...j->...i', R, v)
    return jnp.einsum('...ij,...nj->...ni', R, v)


def from_rpy(rpy: Array) -> Array:
    """
    Rotation matrix from fixed-axis roll-pitch-yaw angles, R = Rz @ Ry @ Rx.

    Args:
        rpy: (3,) array of [roll, pitch, yaw] in radians

    Returns:
        (3, 3) rotation matrix
    """
    rpy = jnp.asarray(rpy, dtype=float)
    roll, pitch, yaw = rpy[0], rpy[1], rpy[2]
    return multiply(
        exp(jnp.array([0.0, 0.0, 1.0]) * yaw),
        multiply(exp(jnp.array([0.0, 1.0, 0.0]) * pitch),
                 exp(jnp.array([1.0, 0.0, 0.0]) * roll)),
    )
