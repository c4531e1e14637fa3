"""Operation Dispatcher.

Routes an operation name and its string arguments to a registry handler,
runs the handler inside one ledger transaction and reports the outcome as a
Result. The transaction is committed only if the handler succeeds, so a failed
operation never leaves a partial write behind.

The stub is discarded once the invocation ends, committed or not.

Nothing is retried here; a Conflict failure means the caller may simply invoke
the same operation again.
"""

import logging
from typing import Callable, Optional, Sequence

from medregistry.domain.ports import (
    LedgerPort,
    LedgerStub,
    RegistryError,
    Result,
    UnknownOperationError,
)
from medregistry.domain.services.registry import PatientRegistry

logger = logging.getLogger(__name__)

Handler = Callable[[LedgerStub, Sequence[str]], Optional[bytes]]

OPERATION_NAMES = (
    "createPatient",
    "updatePatientData",
    "addPatientHistory",
    "getPatientbyID",
    "getPatientHistorybyID",
    "createDisease",
    "getDiseasebyID",
    "assignDiseaseToPatient",
)


class RegistryDispatcher:
    """Maps operation names to registry handlers.

    Parameters:
        ledger: Ledger that provides transactions
        registry: Registry implementation (a fresh PatientRegistry by default)

    Example Usage:
        ```python
        dispatcher = RegistryDispatcher(InMemoryLedger())
        result = dispatcher.invoke("createPatient", ["1", "Ali", "Cairo"])
        assert result.is_success()
        ```
    """

    def __init__(self, ledger: LedgerPort, registry: Optional[PatientRegistry] = None):
        self.ledger = ledger
        self.registry = registry or PatientRegistry()
        self.handlers: dict[str, Handler] = {
            "createPatient": self.registry.create_patient,
            "updatePatientData": self.registry.update_patient_data,
            "addPatientHistory": self.registry.add_patient_history,
            "getPatientbyID": self.registry.get_patient_by_id,
            "getPatientHistorybyID": self.registry.get_patient_history_by_id,
            "createDisease": self.registry.create_disease,
            "getDiseasebyID": self.registry.get_disease_by_id,
            "assignDiseaseToPatient": self.registry.assign_disease_to_patient,
        }

    def invoke(self, function: str, args: Sequence[str]) -> Result[Optional[bytes]]:
        """Run one operation in its own transaction.

        Parameters:
            function: Operation name, e.g. "createPatient"
            args: Ordered string arguments

        Returns:
            Result[Optional[bytes]]: Payload on success; category and message on failure
        """
        handler = self.handlers.get(function)
        if handler is None:
            error = UnknownOperationError(
                f"Invalid invoke function name {function!r}. Expecting one of: {', '.join(OPERATION_NAMES)}",
                details={"function": function}
            )
            logger.warning(str(error))
            return Result.failure_result(error, error_details={"function": function})

        tx_id = None
        stub = None
        try:
            stub = self.ledger.begin_transaction()
            tx_id = stub.tx_id
            extra = {"tx_id": tx_id, "function_name": function}
            logger.debug(f"Invoking {function} with {len(args)} argument(s)", extra=extra)

            payload = handler(stub, list(args))
            self.ledger.commit(stub)
        except RegistryError as e:
            logger.warning(
                f"{function} failed ({e.error_type}): {str(e)}",
                extra={"tx_id": tx_id, "function_name": function}
            )
            details = {"function": function, "tx_id": tx_id}
            details.update(e.details)
            return Result.failure_result(e, error_details=details)
        finally:
            # one stub per invocation
            if stub is not None:
                stub.discard()

        logger.debug(f"{function} succeeded", extra=extra)
        return Result.success_result(payload)
