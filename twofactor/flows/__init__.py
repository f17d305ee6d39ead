# twofactor/flows/__init__.py

from twofactor.flows.enrollment import EnrollmentState, TwoFactorEnrollmentFlow
from twofactor.flows.login import TwoFactorLoginFlow
from twofactor.flows.pending import PendingEnrollment, PendingEnrollmentStore

__all__ = [
    'EnrollmentState',
    'PendingEnrollment',
    'PendingEnrollmentStore',
    'TwoFactorEnrollmentFlow',
    'TwoFactorLoginFlow',
]
