"""Noise settings for the factors emitted by the graph builder.

Each factor family gets an isotropic standard deviation; a factor's whitened
error is its residual divided by that sigma. Hard constraints (priors and
collocation) use ``constrained_sigma``, a very small sigma rather than an
infinite weight, so the whitened error stays finite.
"""

from flax import struct


@struct.dataclass
class OptimizerSetting:
    """Per-family noise sigmas.

    Attributes:
        bp_sigma: Fixed-link pose priors.
        bv_sigma: Fixed-link zero-twist priors.
        ba_sigma: Fixed-link zero-acceleration priors.
        p_sigma: Pose factors.
        v_sigma: Twist factors.
        a_sigma: Twist-acceleration factors.
        f_sigma: Wrench-balance and wrench-equivalence factors.
        t_sigma: Torque factors.
        planar_sigma: Planar wrench factors.
        q_sigma, qv_sigma, qa_sigma: Joint angle / velocity / acceleration
            objectives.
        jl_sigma: Joint-limit objectives.
        min_torque_sigma: Minimum-torque objectives.
        constrained_sigma: Priors and collocation constraints.
    """
    bp_sigma: float = struct.field(pytree_node=False, default=1e-5)
    bv_sigma: float = struct.field(pytree_node=False, default=1e-5)
    ba_sigma: float = struct.field(pytree_node=False, default=1e-5)
    p_sigma: float = struct.field(pytree_node=False, default=1e-3)
    v_sigma: float = struct.field(pytree_node=False, default=1.0)
    a_sigma: float = struct.field(pytree_node=False, default=1.0)
    f_sigma: float = struct.field(pytree_node=False, default=1.0)
    t_sigma: float = struct.field(pytree_node=False, default=1.0)
    planar_sigma: float = struct.field(pytree_node=False, default=1e-5)
    q_sigma: float = struct.field(pytree_node=False, default=1e-3)
    qv_sigma: float = struct.field(pytree_node=False, default=1e-3)
    qa_sigma: float = struct.field(pytree_node=False, default=1e-3)
    jl_sigma: float = struct.field(pytree_node=False, default=1e-3)
    min_torque_sigma: float = struct.field(pytree_node=False, default=1.0)
    constrained_sigma: float = struct.field(pytree_node=False, default=1e-5)

    @classmethod
    def uniform(cls, sigma: float) -> "OptimizerSetting":
        """Same sigma for every dynamics family, priors stay constrained."""
        return cls(
            bp_sigma=sigma, bv_sigma=sigma, ba_sigma=sigma,
            p_sigma=sigma, v_sigma=sigma, a_sigma=sigma,
            f_sigma=sigma, t_sigma=sigma, planar_sigma=sigma,
            q_sigma=sigma, qv_sigma=sigma, qa_sigma=sigma, jl_sigma=sigma,
            min_torque_sigma=sigma,
        )
