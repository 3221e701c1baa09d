"""
Angel type membership workflow.

- Angels join angel types themselves or are added by a supporter
- Memberships start unconfirmed; supporters confirm or deny them
- Admins grant and revoke supporter rights
- Every state change is recorded to the append-only audit trail
"""
