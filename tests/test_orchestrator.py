"""Tests for the model orchestrator."""

import asyncio

import pytest

from nlu.core import ModelId, ModelOrchestrator
from nlu.core.abstractions import IntentDefinition
from nlu.engines import CentroidEngine
from nlu.errors import (
    DependencyInitError,
    ModelNotFoundError,
    NoModelAvailableError,
    NotMountedError,
    TrainingAlreadyInProgressError,
    TrainingCanceledError,
    TrainingFailedError,
    UnsupportedLanguageError,
)
from nlu.stores import FileSystemModelRepository

from tests.conftest import FakeEngine, InMemoryModelRepository, StaticDefinitionsProvider, make_model


class FailingDefinitionsProvider(StaticDefinitionsProvider):
    """Definitions whose storage cannot be opened."""

    async def initialize(self) -> None:
        raise OSError("definitions folder unreadable")


class CancelIgnoringEngine(FakeEngine):
    """Engine that records cancellation requests but keeps training."""

    async def cancel_training(self, training_id):
        self.cancel_calls.append(training_id)


class TestMount:
    """Test mount and unmount."""

    @pytest.mark.asyncio
    async def test_mount_initializes_collaborators(self, orchestrator, repository, definitions):
        await orchestrator.mount()

        assert repository.initialized
        assert definitions.initialized
        assert orchestrator.is_mounted

    @pytest.mark.asyncio
    async def test_mount_failure_raises_dependency_error(self, bot, engine, definitions):
        repository = InMemoryModelRepository(fail_on_init=True)
        orchestrator = ModelOrchestrator(bot, engine, repository, definitions)

        with pytest.raises(DependencyInitError) as exc_info:
            await orchestrator.mount()

        assert isinstance(exc_info.value.cause, OSError)
        assert not definitions.initialized
        assert not orchestrator.is_mounted

    @pytest.mark.asyncio
    async def test_definitions_failure_tears_down_repository(self, bot, engine, repository):
        orchestrator = ModelOrchestrator(bot, engine, repository, FailingDefinitionsProvider())

        with pytest.raises(DependencyInitError) as exc_info:
            await orchestrator.mount()

        assert isinstance(exc_info.value.cause, OSError)
        assert not repository.initialized
        assert not orchestrator.is_mounted

    @pytest.mark.asyncio
    async def test_operations_require_mount(self, orchestrator):
        with pytest.raises(NotMountedError):
            await orchestrator.load_latest("en")
        with pytest.raises(NotMountedError):
            await orchestrator.train("en")

    @pytest.mark.asyncio
    async def test_unmount_unloads_every_model(self, orchestrator, engine, repository, definitions):
        en, fr = make_model("en"), make_model("fr")
        repository.models = {en.id: en, fr.id: fr}
        await orchestrator.mount()
        await orchestrator.load_latest("en")
        await orchestrator.load_latest("fr")

        await orchestrator.unmount()

        assert definitions.torn_down
        assert set(engine.unloaded) == {en.id, fr.id}
        assert orchestrator.loaded_models() == {}

    @pytest.mark.asyncio
    async def test_unmount_is_idempotent(self, orchestrator, engine):
        await orchestrator.mount()
        await orchestrator.unmount()
        await orchestrator.unmount()

        assert engine.unloaded == []

    @pytest.mark.asyncio
    async def test_predict_after_unmount_has_no_model(self, orchestrator, repository):
        model = make_model("en")
        repository.models = {model.id: model}
        await orchestrator.mount()
        await orchestrator.load_latest("en")

        await orchestrator.unmount()

        with pytest.raises(NoModelAvailableError):
            await orchestrator.predict("hello")


class TestLoad:
    """Test loading models from the repository."""

    @pytest.mark.asyncio
    async def test_load_latest_installs_most_recent(self, orchestrator, engine, repository):
        old = make_model("en", "old", minutes=0)
        new = make_model("en", "new", minutes=5)
        repository.models = {old.id: old, new.id: new}
        await orchestrator.mount()

        loaded = await orchestrator.load_latest("en")

        assert loaded == new
        assert orchestrator.loaded_models()["en"] == new
        assert engine.is_loaded(new.id)

    @pytest.mark.asyncio
    async def test_load_latest_without_model(self, orchestrator):
        await orchestrator.mount()

        with pytest.raises(ModelNotFoundError):
            await orchestrator.load_latest("fr")

    @pytest.mark.asyncio
    async def test_load_by_id_replaces_entry(self, orchestrator, engine, repository):
        first = make_model("en", "first")
        second = make_model("en", "second", minutes=1)
        repository.models = {first.id: first, second.id: second}
        await orchestrator.mount()

        await orchestrator.load(first.id)
        await orchestrator.load(second.id)

        assert orchestrator.loaded_models()["en"] == second
        assert engine.unloaded == [first.id]

    @pytest.mark.asyncio
    async def test_load_missing_id_leaves_registry(self, orchestrator, repository):
        model = make_model("en")
        repository.models = {model.id: model}
        await orchestrator.mount()
        await orchestrator.load(model.id)

        missing = ModelId("bot1", "en", "spec1", "missing", 42)
        with pytest.raises(ModelNotFoundError):
            await orchestrator.load(missing)

        assert orchestrator.loaded_models() == {"en": model}

    @pytest.mark.asyncio
    async def test_load_latest_of_unsupported_language(self, orchestrator, engine, repository):
        german = make_model("de")
        repository.models = {german.id: german}
        await orchestrator.mount()

        with pytest.raises(UnsupportedLanguageError):
            await orchestrator.load_latest("de")

        assert engine.loaded == {}
        assert repository.list_calls == []

    @pytest.mark.asyncio
    async def test_load_by_id_of_unsupported_language(self, orchestrator, engine, repository):
        german = make_model("de")
        repository.models = {german.id: german}
        await orchestrator.mount()

        with pytest.raises(UnsupportedLanguageError):
            await orchestrator.load(german.id)

        assert not engine.is_loaded(german.id)
        assert orchestrator.loaded_models() == {}


class TestTrain:
    """Test training."""

    @pytest.mark.asyncio
    async def test_train_french_scenario(self, orchestrator, engine, repository, definitions):
        m1 = make_model("fr", "m1")
        engine.next_models.append(m1)
        await orchestrator.mount()

        progress = []
        result = await orchestrator.train("fr", progress.append)

        assert result == m1
        assert orchestrator.loaded_models()["fr"] == m1
        assert repository.saved == [m1]
        assert repository.list_calls == ["fr"]
        assert len(repository.prune_calls) == 1
        assert repository.prune_calls[0]["to_keep"] == 2
        assert progress == [0.5, 1.0]

        training_id, training_set, options = engine.train_calls[0]
        assert training_id == "bot1:fr"
        assert len(training_set.intents[0].utterances) == 3
        assert options.previous_model is None

        prediction = await orchestrator.predict("bonjour", "fr")
        assert prediction.model_id == m1.id
        assert engine.predict_calls[-1] == (m1, "bonjour")

        with pytest.raises(NoModelAvailableError):
            await orchestrator.predict("hello")

    @pytest.mark.asyncio
    async def test_train_unsupported_language(self, orchestrator):
        await orchestrator.mount()

        with pytest.raises(UnsupportedLanguageError):
            await orchestrator.train("de")

    @pytest.mark.asyncio
    async def test_train_seeds_with_current_model(self, orchestrator, engine, repository):
        previous = make_model("en", "previous")
        repository.models = {previous.id: previous}
        engine.next_models.append(make_model("en", "next", minutes=1))
        await orchestrator.mount()
        await orchestrator.load_latest("en")

        await orchestrator.train("en")

        _, _, options = engine.train_calls[0]
        assert options.previous_model == previous
        assert previous.id in engine.unloaded

    @pytest.mark.asyncio
    async def test_train_keeps_two_most_recent(self, orchestrator, engine, repository):
        for minutes in range(3):
            model = make_model("en", f"old{minutes}", minutes=minutes)
            repository.models[model.id] = model
        latest = make_model("en", "latest", minutes=10)
        engine.next_models.append(latest)
        await orchestrator.mount()

        await orchestrator.train("en")

        remaining = await repository.list_models("en")
        assert len(remaining) == 2
        assert latest in remaining
        assert orchestrator.loaded_models()["en"] in remaining

    @pytest.mark.asyncio
    async def test_pruning_spares_installed_model(self, orchestrator, engine, repository):
        old = make_model("en", "old", minutes=0)
        m1 = make_model("en", "m1", minutes=5)
        m2 = make_model("en", "m2", minutes=10)
        repository.models = {m.id: m for m in (old, m1, m2)}
        # Engine clock behind the stored models
        trained = make_model("en", "trained", minutes=-10)
        engine.next_models.append(trained)
        await orchestrator.mount()
        await orchestrator.load(old.id)

        await orchestrator.train("en")

        _, _, options = engine.train_calls[0]
        assert options.previous_model == old
        assert repository.prune_calls[0]["protected"] == [trained.id]
        assert set(repository.models) == {trained.id, m1.id, m2.id}
        assert orchestrator.loaded_models()["en"] == trained

    @pytest.mark.asyncio
    async def test_retrained_reverted_data_is_latest_after_restart(self, bot, tmp_path):
        first = [IntentDefinition(name="greeting", utterances=["hello", "hi"])]
        second = first + [IntentDefinition(name="goodbye", utterances=["bye", "see you"])]
        definitions = StaticDefinitionsProvider(intents={"en": first})
        orchestrator = ModelOrchestrator(
            bot, CentroidEngine(), FileSystemModelRepository(str(tmp_path), "bot1"), definitions
        )
        await orchestrator.mount()

        original = await orchestrator.train("en")
        definitions.intents["en"] = second
        changed = await orchestrator.train("en")
        definitions.intents["en"] = first
        reverted = await orchestrator.train("en")
        await orchestrator.unmount()

        assert reverted.id == original.id
        assert changed.id != original.id

        restarted = ModelOrchestrator(
            bot, CentroidEngine(), FileSystemModelRepository(str(tmp_path), "bot1"), definitions
        )
        await restarted.mount()

        latest = await restarted.load_latest("en")

        assert latest.id == reverted.id
        assert latest.created_at == reverted.created_at

    @pytest.mark.asyncio
    async def test_engine_failure_changes_nothing(self, orchestrator, engine, repository):
        current = make_model("en", "current")
        repository.models = {current.id: current}
        engine.train_error = RuntimeError("out of memory")
        await orchestrator.mount()
        await orchestrator.load_latest("en")

        with pytest.raises(TrainingFailedError) as exc_info:
            await orchestrator.train("en")

        assert isinstance(exc_info.value.cause, RuntimeError)
        assert orchestrator.loaded_models()["en"] == current
        assert repository.saved == []
        assert repository.prune_calls == []
        assert not orchestrator.is_training("en")

    @pytest.mark.asyncio
    async def test_same_language_training_is_rejected(self, orchestrator, engine):
        engine.block = True
        engine.next_models.append(make_model("en"))
        await orchestrator.mount()

        first = asyncio.create_task(orchestrator.train("en"))
        await engine.started.wait()

        with pytest.raises(TrainingAlreadyInProgressError):
            await orchestrator.train("en")

        engine.release.set()
        await first
        assert not orchestrator.is_training("en")

    @pytest.mark.asyncio
    async def test_different_languages_train_concurrently(self, orchestrator, engine):
        en, fr = make_model("en", "en1"), make_model("fr", "fr1")
        engine.next_models.extend([en, fr])
        await orchestrator.mount()

        await asyncio.gather(orchestrator.train("en"), orchestrator.train("fr"))

        assert set(orchestrator.loaded_models()) == {"en", "fr"}


class TestCancel:
    """Test training cancellation."""

    @pytest.mark.asyncio
    async def test_cancel_unsupported_language(self, orchestrator):
        with pytest.raises(UnsupportedLanguageError):
            await orchestrator.cancel_training("de")

    @pytest.mark.asyncio
    async def test_cancel_without_training_is_noop(self, orchestrator, engine):
        await orchestrator.cancel_training("fr")

        assert engine.cancel_calls == ["bot1:fr"]

    @pytest.mark.asyncio
    async def test_cancel_running_training(self, orchestrator, engine, repository):
        engine.block = True
        engine.next_models.append(make_model("fr"))
        await orchestrator.mount()

        task = asyncio.create_task(orchestrator.train("fr"))
        await engine.started.wait()
        await orchestrator.cancel_training("fr")

        with pytest.raises(TrainingCanceledError):
            await task

        assert "fr" not in orchestrator.loaded_models()
        assert repository.saved == []

    @pytest.mark.asyncio
    async def test_unmount_cancels_running_training(self, orchestrator, engine, repository):
        engine.block = True
        engine.next_models.append(make_model("en"))
        await orchestrator.mount()

        task = asyncio.create_task(orchestrator.train("en"))
        await engine.started.wait()
        await orchestrator.unmount()

        with pytest.raises(TrainingCanceledError):
            await task

        assert engine.cancel_calls == ["bot1:en"]
        assert orchestrator.loaded_models() == {}
        assert repository.saved == []

    @pytest.mark.asyncio
    async def test_training_finishing_after_unmount_is_discarded(self, bot, repository, definitions):
        engine = CancelIgnoringEngine()
        engine.block = True
        model = make_model("en")
        engine.next_models.append(model)
        orchestrator = ModelOrchestrator(bot, engine, repository, definitions)
        await orchestrator.mount()

        task = asyncio.create_task(orchestrator.train("en"))
        await engine.started.wait()
        await orchestrator.unmount()
        engine.release.set()

        with pytest.raises(TrainingCanceledError):
            await task

        assert repository.saved == []
        assert not engine.is_loaded(model.id)
        assert orchestrator.loaded_models() == {}
        assert not orchestrator.is_training("en")


class TestPredict:
    """Test prediction routing through the orchestrator."""

    @pytest.mark.asyncio
    async def test_unsupported_language_falls_back_to_default(self, orchestrator, engine, repository):
        en = make_model("en")
        repository.models = {en.id: en}
        await orchestrator.mount()
        await orchestrator.load_latest("en")

        result = await orchestrator.predict("hallo", "de")

        assert result.model_id == en.id

    @pytest.mark.asyncio
    async def test_default_language_succeeds_once_loaded(self, orchestrator, repository):
        en = make_model("en")
        repository.models = {en.id: en}
        await orchestrator.mount()

        with pytest.raises(NoModelAvailableError):
            await orchestrator.predict("hello")

        await orchestrator.load_latest("en")
        result = await orchestrator.predict("hello")
        assert result.language_code == "en"


class TestNeedsTraining:
    """Test staleness detection."""

    @pytest.mark.asyncio
    async def test_needs_training_without_model(self, orchestrator):
        await orchestrator.mount()

        assert await orchestrator.needs_training("en")

    @pytest.mark.asyncio
    async def test_up_to_date_model(self, orchestrator, repository):
        # FakeEngine fingerprints a training set by its intent count
        model = make_model("en", "content-1")
        repository.models = {model.id: model}
        await orchestrator.mount()
        await orchestrator.load_latest("en")

        assert not await orchestrator.needs_training("en")

    @pytest.mark.asyncio
    async def test_stale_model(self, orchestrator, repository):
        model = make_model("en", "content-7")
        repository.models = {model.id: model}
        await orchestrator.mount()
        await orchestrator.load_latest("en")

        assert await orchestrator.needs_training("en")
