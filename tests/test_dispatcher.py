"""Tests for operation routing and transaction handling in the dispatcher."""

from unittest.mock import Mock

import pytest

from medregistry.dispatcher import OPERATION_NAMES, RegistryDispatcher
from medregistry.domain.ports import BackingStoreError, ConflictError, NotFoundError, Result
from medregistry.domain.services.registry import PatientRegistry


class TestRouting:
    """Test suite for name-based routing."""

    def test_every_operation_has_a_handler(self, dispatcher):
        assert set(dispatcher.handlers) == set(OPERATION_NAMES)
        assert len(OPERATION_NAMES) == 8

    def test_unknown_operation(self, dispatcher, ledger):
        result = dispatcher.invoke("deletePatient", ["1"])
        assert result.is_failure()
        assert result.error_type == "UnknownOperation"
        assert "createPatient" in result.error
        assert result.error_details == {"function": "deletePatient"}

    def test_names_are_case_sensitive(self, dispatcher):
        assert dispatcher.invoke("getPatientById", ["1"]).error_type == "UnknownOperation"

    def test_custom_registry_is_used(self, ledger):
        registry = Mock(spec=PatientRegistry)
        registry.get_patient_by_id.return_value = b"payload"
        dispatcher = RegistryDispatcher(ledger, registry=registry)

        result = dispatcher.invoke("getPatientbyID", ["1"])
        assert result == Result.success_result(b"payload")
        stub, args = registry.get_patient_by_id.call_args.args
        assert args == ["1"]
        assert stub.tx_id == "tx-1"


class TestTransactions:
    """Test suite for commit/abort behaviour."""

    def test_commits_on_success(self, dispatcher, ledger):
        dispatcher.invoke("createPatient", ["1", "Ali", "Cairo"])
        assert ledger.read_committed("Patient-1")[1] == 1

    def test_failure_details(self, dispatcher):
        result = dispatcher.invoke("getPatientbyID", ["1"])
        assert result.error_details["function"] == "getPatientbyID"
        assert result.error_details["tx_id"] == "tx-1"
        assert result.error_details["key"] == "Patient-1"

    def test_handler_error_skips_commit(self, ledger):
        registry = Mock(spec=PatientRegistry)
        registry.create_patient.side_effect = NotFoundError("boom")
        ledger.commit = Mock()

        result = RegistryDispatcher(ledger, registry=registry).invoke("createPatient", ["1", "a", "b"])
        assert result.error_type == "NotFound"
        ledger.commit.assert_not_called()

    def test_concurrent_assignments_conflict(self, dispatcher, ledger):
        """Test racing assignments: one commits, the other aborts, a retry is rejected."""
        dispatcher.invoke("createPatient", ["1", "Ali", "Cairo"])
        dispatcher.invoke("createDisease", ["7", "Diabetes", "desc"])
        registry = dispatcher.registry

        first = ledger.begin_transaction()
        second = ledger.begin_transaction()
        registry.assign_disease_to_patient(first, ["1", "7"])
        registry.assign_disease_to_patient(second, ["1", "7"])

        ledger.commit(first)
        with pytest.raises(ConflictError):
            ledger.commit(second)

        retry = dispatcher.invoke("assignDiseaseToPatient", ["1", "7"])
        assert retry.error_type == "AlreadyAssociated"

    def test_conflict_surfaces_as_failure(self, dispatcher, ledger):
        dispatcher.invoke("createPatient", ["1", "Ali", "Cairo"])
        original_commit = ledger.commit

        def commit_after_concurrent_write(stub):
            other = ledger.begin_transaction()
            other.put_state("Patient-1", b'{"ID":1,"Name":"x","Address":"y","CreatedAt":0,"UpdatedAt":0}')
            original_commit(other)
            original_commit(stub)

        ledger.commit = commit_after_concurrent_write
        result = dispatcher.invoke("updatePatientData", ["1", "Ali", "Giza"])
        assert result.error_type == "Conflict"

    def test_id_with_trailing_newline_writes_nothing(self, dispatcher, ledger):
        result = dispatcher.invoke("createPatient", ["7\n", "Ali", "Cairo"])
        assert result.error_type == "InvalidArgument"
        assert result.error == "ID: 1st argument must be a numeric 64bit of string"
        assert ledger.read_committed("Patient-7") == (None, 0)
        assert dispatcher.invoke("getPatientbyID", ["7"]).error_type == "NotFound"

    def test_assign_rejects_newline_in_either_id(self, dispatcher):
        assert dispatcher.invoke("assignDiseaseToPatient", ["1\n", "7"]).error_type == "InvalidArgument"
        assert dispatcher.invoke("assignDiseaseToPatient", ["1", "7\r\n"]).error_type == "InvalidArgument"

    def test_failed_invocation_discards_stub(self, ledger):
        registry = Mock(spec=PatientRegistry)
        stubs = []

        def fail_after_write(stub, args):
            stubs.append(stub)
            stub.put_state("Patient-1", b"{}")
            raise NotFoundError("boom")

        registry.create_patient.side_effect = fail_after_write
        result = RegistryDispatcher(ledger, registry=registry).invoke("createPatient", ["1", "a", "b"])

        assert result.error_type == "NotFound"
        stub = stubs[0]
        assert stub.finished
        assert stub.write_set == {}
        with pytest.raises(BackingStoreError):
            stub.get_state("Patient-1")
        with pytest.raises(BackingStoreError):
            ledger.commit(stub)

    def test_successful_invocation_finishes_stub(self, ledger):
        registry = Mock(spec=PatientRegistry)
        stubs = []
        registry.get_patient_by_id.side_effect = lambda stub, args: stubs.append(stub) or b"payload"

        result = RegistryDispatcher(ledger, registry=registry).invoke("getPatientbyID", ["1"])
        assert result.value == b"payload"
        assert stubs[0].finished
