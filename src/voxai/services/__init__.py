"""
voxai services layer.

Business logic between the HTTP API and the speech model:
    - errors.py: Error codes and the VoxError hierarchy
    - validators.py: Request validation
    - ledger.py: In-memory credit ledger
    - sessions.py: Credentials -> identity -> account
    - identity.py: Google OAuth code exchange
    - cancellation.py: Cancellation tokens and registry
    - history.py: Per-identity generation history
    - orchestrator.py: The generation request lifecycle

The orchestrator is not re-exported here because it imports the tts
package, which itself depends on this package's leaf modules.
"""
from .errors import ErrorCode, VoxError

__all__ = ["ErrorCode", "VoxError"]
