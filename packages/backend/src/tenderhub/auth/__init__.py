"""Authentication.

Learn: token issuance and signature checks are the only auth TenderHub
does itself. A verified token yields a "current identity" (user id +
role) that the admission controller and the notification registry key on.
"""
