"""Domain Services.

This package contains the registry operations that implement business logic
against the LedgerStub port, without infrastructure dependencies.
"""

from medregistry.domain.services.registry import PatientRegistry, iter_patient_ids, iter_disease_ids

__all__ = ['PatientRegistry', 'iter_patient_ids', 'iter_disease_ids']
