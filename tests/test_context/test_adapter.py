"""Contract tests every storage backend must pass."""

import pytest

from aiknowsys.context.adapter import StorageAdapter
from aiknowsys.context.json_storage import JsonStorage
from aiknowsys.context.models import PlanFilters, SessionFilters
from aiknowsys.context.sqlite_storage import SqliteStorage
from aiknowsys.errors import AdapterNotImplementedError, StorageNotInitializedError, ValidationError

CONTRACT_CALLS = [
    ("init", ("/tmp",)),
    ("query_plans", (PlanFilters(),)),
    ("query_sessions", (SessionFilters(),)),
    ("query_learned", ()),
    ("search", ("query", "all")),
    ("rebuild_index", ()),
    ("close", ()),
]


class Incomplete(StorageAdapter):
    pass


class TestBaseAdapter:
    @pytest.mark.parametrize("method,args", CONTRACT_CALLS)
    def test_unoverridden_methods_raise(self, method, args):
        adapter = Incomplete()
        with pytest.raises(AdapterNotImplementedError) as excinfo:
            getattr(adapter, method)(*args)

        assert excinfo.value.adapter == "Incomplete"
        assert excinfo.value.method == method
        assert f"Incomplete.{method}()" in str(excinfo.value)

    def test_not_implemented_is_distinct(self):
        assert issubclass(AdapterNotImplementedError, NotImplementedError)


@pytest.fixture(params=["json", "sqlite"])
def backend(request, tmp_path):
    if request.param == "json":
        return JsonStorage()
    return SqliteStorage(db_path=tmp_path / "kb.db", project_id="acme/site")


class TestBackendConformance:
    @pytest.mark.parametrize("method,_args", CONTRACT_CALLS)
    def test_overrides_every_contract_method(self, backend, method, _args):
        assert getattr(type(backend), method) is not getattr(StorageAdapter, method)

    def test_query_before_init_raises(self, backend):
        with pytest.raises(StorageNotInitializedError):
            backend.query_plans(PlanFilters())

    def test_empty_project(self, backend, project):
        with backend:
            backend.init(project)
            result = backend.rebuild_index()
            assert result.total == 0
            assert backend.query_plans() == []
            assert backend.query_sessions() == []
            assert backend.search("anything") == []

    def test_invalid_scope(self, backend, project):
        with backend:
            backend.init(project)
            with pytest.raises(ValidationError, match="Invalid scope"):
                backend.search("x", "everything")

    def test_close_is_idempotent(self, backend, project):
        backend.init(project)
        backend.close()
        backend.close()

    @pytest.mark.parametrize("query", ["ärger", "ÜBER-CACHING"])
    def test_search_folds_non_ascii_case(self, backend, project, write_file, query):
        write_file("PLAN_cache.md", "# Cache\n\nÄrger mit Über-Caching\n")
        write_file("learned/cache.md", "# Cache\n\nÄrger mit Über-Caching\n")
        with backend:
            backend.init(project)
            backend.rebuild_index()
            results = backend.search(query)

        assert sorted(r.type for r in results) == ["learned", "plan"]
