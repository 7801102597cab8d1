"""Demo account resolution."""

from collections.abc import Mapping
from dataclasses import dataclass

from .ports import AccountKind, Identity, Role

DEMO_IDS = {
    Role.STUDENT: "demo-user-id",
    Role.ADMIN: "demo-admin-id",
}


@dataclass
class AccountDirectory:
    """
    Resolves which kind of account an email or identity id refers to.

    Demo accounts are fixed identities (email -> role) that are not backed
    by the credential store.
    """

    demo_accounts: Mapping[str, str]

    def kind_of(self, email: str) -> AccountKind:
        return AccountKind.DEMO if email in self.demo_accounts else AccountKind.NORMAL

    def demo_identity(self, email: str) -> Identity:
        """Build the synthetic identity for a demo email."""
        role = Role(self.demo_accounts[email])
        return Identity(
            id=DEMO_IDS[role],
            email=email,
            first_name="Admin" if role is Role.ADMIN else "Demo",
            last_name="User",
            role=role,
        )

    def demo_identity_for(self, identity_id: str, email: str) -> Identity | None:
        """Resolve a demo identity from token claims, or None if not a demo."""
        if self.kind_of(email) is not AccountKind.DEMO:
            return None
        identity = self.demo_identity(email)
        return identity if identity.id == identity_id else None
