import pytest
from sqlalchemy.exc import OperationalError

from greycat.core.exceptions import ServiceException
from greycat.services.base import BaseService


class FailingWriteService(BaseService):
    @BaseService.measure_operation("fail_write")
    def fail_write(self):
        with self.transaction():
            raise OperationalError("INSERT", {}, Exception("disk I/O error"))


def test_database_errors_keep_their_cause(db):
    with pytest.raises(ServiceException) as exc_info:
        FailingWriteService(db).fail_write()

    assert isinstance(exc_info.value.__cause__, OperationalError)
    assert exc_info.value.status_code == 500
