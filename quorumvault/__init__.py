"""
quorumvault: client-side mirror and decoder for a weighted multisig
transaction-governance controller.

Core imports are lazily loaded. For direct module access, import from
submodules:

    from quorumvault.governance import compute_status, allowed_actions
    from quorumvault.decoding import describe
    from quorumvault.governance.session import GovernanceSession
"""

__version__ = "0.1.0"


def __getattr__(name):
    """Lazy module loading."""
    if name == 'GovernanceSession':
        from .governance.session import GovernanceSession
        return GovernanceSession
    elif name == 'LedgerCache':
        from .governance.ledger import LedgerCache
        return LedgerCache
    elif name == 'describe':
        from .decoding import describe
        return describe
    elif name == 'load_config':
        from .config import load_config
        return load_config
    elif name == 'QuorumVaultError':
        from .exceptions import QuorumVaultError
        return QuorumVaultError
    raise AttributeError(f"module 'quorumvault' has no attribute {name!r}")


__all__ = ['GovernanceSession', 'LedgerCache', 'describe', 'load_config', 'QuorumVaultError']
