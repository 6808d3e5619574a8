from .models import Credential
from .provider import AuthProvider, PrivateKeyAuthProvider, ProviderChangeCallback
from .signer import Signer

__all__ = [
    "Credential",
    "AuthProvider",
    "PrivateKeyAuthProvider",
    "ProviderChangeCallback",
    "Signer",
]
