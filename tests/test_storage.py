import io
import pytest
from decimal import Decimal
from pydantic import ValidationError

from exceptions import InputFileError, RecordParseError
from models import AccountStatement, ClientAccount, TransactionRecord, TransactionType
from storage import parse_rows, read_transaction_records, write_account_statements


def parse(text, **kwargs):
    return list(parse_rows(io.StringIO(text), **kwargs))


class TestRecordParsing:
    """Test conversion of raw fields into typed records."""

    def test_whitespace_trimmed(self):
        record = TransactionRecord.model_validate(
            {"type": "deposit", "client": " 1", "tx": "  2 ", "amount": " 3.5 "}
        )

        assert record.type == TransactionType.deposit
        assert record.client == 1
        assert record.tx == 2
        assert record.amount == Decimal("3.5")

    def test_amount_rescaled_to_four_digits(self):
        record = TransactionRecord.model_validate({"type": "deposit", "client": "1", "tx": "1", "amount": "1.5"})
        assert str(record.amount) == "1.5000"

    def test_amount_rounds_half_up(self):
        record = TransactionRecord.model_validate(
            {"type": "deposit", "client": "1", "tx": "1", "amount": "1.00005"}
        )
        assert record.amount == Decimal("1.0001")

    def test_custom_scale_from_context(self):
        record = TransactionRecord.model_validate(
            {"type": "withdrawal", "client": "1", "tx": "1", "amount": "1.555"},
            context={"scale": 2}
        )
        assert str(record.amount) == "1.56"

    @pytest.mark.parametrize("type", ["dispute", "resolve", "chargeback"])
    def test_reference_rows_do_not_parse_amount(self, type):
        """Whatever sits in the amount column of a referencing row is never parsed."""
        record = TransactionRecord.model_validate(
            {"type": type, "client": "1", "tx": "1", "amount": "abc"}
        )
        assert record.type == TransactionType(type)
        assert record.amount is None

    def test_reference_rows_drop_amount(self):
        record = TransactionRecord.model_validate(
            {"type": "dispute", "client": "1", "tx": "1", "amount": "7.0"}
        )
        assert record.amount is None

    @pytest.mark.parametrize("values", [
        {"type": "deposit", "client": "1", "tx": "1"},
        {"type": "withdrawal", "client": "1", "tx": "1", "amount": "  "},
        {"type": "Deposit", "client": "1", "tx": "1", "amount": "1.0"},
        {"type": "transfer", "client": "1", "tx": "1", "amount": "1.0"},
        {"type": "deposit", "client": "65536", "tx": "1", "amount": "1.0"},
        {"type": "deposit", "client": "-1", "tx": "1", "amount": "1.0"},
        {"type": "deposit", "client": "1", "tx": "4294967296", "amount": "1.0"},
        {"type": "deposit", "client": "abc", "tx": "1", "amount": "1.0"},
        {"type": "deposit", "client": "1", "tx": "1", "amount": "ten"},
        {"type": "deposit", "client": "1", "tx": "1", "amount": "NaN"},
        {"type": " deposit", "client": "1", "tx": "1", "amount": "1.0"},
        {"type": "dispute ", "client": "1", "tx": "1"},
    ])
    def test_invalid_rows_rejected(self, values):
        with pytest.raises(ValidationError):
            TransactionRecord.model_validate(values)

    def test_id_bounds_accepted(self):
        record = TransactionRecord.model_validate(
            {"type": "deposit", "client": "65535", "tx": "4294967295", "amount": "0"}
        )
        assert record.client == 65535
        assert record.tx == 4294967295


class TestReadingCsv:
    """Test reading transaction CSV text."""

    def test_reads_rows_in_order(self):
        records = parse(
            "type,client,tx,amount\n"
            "deposit,1,1,1.0\n"
            "withdrawal,1,2,0.5\n"
            "dispute,1,1,\n"
        )

        assert [r.type for r in records] == [
            TransactionType.deposit, TransactionType.withdrawal, TransactionType.dispute
        ]
        assert records[1].amount == Decimal("0.5")
        assert records[2].amount is None

    def test_spaced_header_and_fields(self):
        records = parse("type, client, tx, amount\ndeposit, 1, 1, 1.0\n")
        assert records[0].client == 1

    def test_junk_amount_on_dispute_row_accepted(self):
        records = parse("type,client,tx,amount\ndeposit,1,1,1.0\ndispute,1,1,abc\n")

        assert len(records) == 2
        assert records[1].type == TransactionType.dispute
        assert records[1].amount is None

    def test_amount_column_may_be_missing(self):
        records = parse("type,client,tx,amount\ndeposit,1,1,2.0\nresolve,1,1\n")
        assert records[1].type == TransactionType.resolve

    def test_columns_located_by_name(self):
        records = parse("client,tx,amount,type\n1,2,3.0,deposit\n")
        assert (records[0].client, records[0].tx, records[0].amount) == (1, 2, Decimal("3"))

    def test_blank_lines_skipped(self):
        records = parse("type,client,tx,amount\n\ndeposit,1,1,1.0\n\n")
        assert len(records) == 1

    def test_empty_input(self):
        assert parse("") == []

    def test_missing_header_column(self):
        with pytest.raises(RecordParseError, match="amount"):
            parse("type,client,tx\ndeposit,1,1\n")

    def test_bad_row_reports_line(self):
        with pytest.raises(RecordParseError) as exc_info:
            parse("type,client,tx,amount\ndeposit,1,1,1.0\ndeposit,x,2,1.0\n")

        assert exc_info.value.line == 3
        assert "client" in str(exc_info.value)

    def test_deposit_without_amount_is_fatal(self):
        with pytest.raises(RecordParseError):
            parse("type,client,tx,amount\ndeposit,1,1,\n")

    def test_missing_file(self, tmp_path):
        with pytest.raises(InputFileError):
            read_transaction_records(str(tmp_path / "missing.csv"))

    def test_reads_file(self, tmp_path):
        path = tmp_path / "transactions.csv"
        path.write_text("type,client,tx,amount\ndeposit,1,1,1.0\n")

        records = list(read_transaction_records(str(path)))
        assert len(records) == 1


class TestWritingCsv:
    def test_writes_header_and_rows(self):
        account = ClientAccount(id=3)
        account.available = Decimal("1.5000")
        account.held = Decimal("2.0000")
        account.total = Decimal("3.5000")
        account.locked = True
        stream = io.StringIO()

        written = write_account_statements(stream, [AccountStatement.from_account(account)])

        assert written == 1
        assert stream.getvalue() == (
            "client,available,held,total,locked\n"
            "3,1.5000,2.0000,3.5000,true\n"
        )

    def test_new_account_renders_stored_scale(self):
        statement = AccountStatement.from_account(ClientAccount(id=1))
        assert statement.as_row() == ["1", "0.0000", "0.0000", "0.0000", "false"]
