#!/usr/bin/env python3

import ast
from textwrap import dedent

import pytest

from uc_transformer.build.bundle import TaskKind
from uc_transformer.errors import UcSourceError
from uc_transformer.rewrite.transformer import UcTasks, UcTransformer


class RecordingTasks(UcTasks):
    """Records the transformer output."""

    def __init__(self):
        self.units = {}
        self.tasks = []

    def replace_source_unit(self, unit, final, build):
        self.units[unit.module] = (ast.unparse(final), ast.unparse(build))

    def compile_uc_deserializer(self, task):
        self.tasks.append(task)

    def compile_uc_serializer(self, task):
        self.tasks.append(task)


@pytest.fixture
def transform(make_project):
    """Rewrite a program and return the recorded output."""

    def transform(files: dict[str, str], config=None):
        project = make_project({path: dedent(text) for path, text in files.items()}, config)
        tasks = RecordingTasks()
        UcTransformer(project.setup, tasks).transform_program()
        return project, tasks

    return transform


def final(tasks: RecordingTasks, module: str = "app.main") -> str:
    return tasks.units[module][0]


def build(tasks: RecordingTasks, module: str = "app.main") -> str:
    return tasks.units[module][1]


class TestSerializerCalls:
    """Test cases for rewriting of serializer and deserializer factory calls"""

    def test_declared_serializer(self, transform):
        """Test rewriting a serializer assigned to a module-level name"""
        project, tasks = transform(
            {
                "app/main.py": """
                    from fake_churi import create_uc_serializer

                    write_number = create_uc_serializer(int)
                """
            }
        )

        assert final(tasks) == dedent(
            """\
            from .uc_lib import write_number as write_number_1
            from fake_churi import create_uc_serializer
            write_number__model = int
            write_number = write_number_1"""
        )
        assert build(tasks) == dedent(
            """\
            from fake_churi import create_uc_serializer
            write_number__model = int
            write_number = create_uc_serializer(write_number__model)"""
        )

        [task] = tasks.tasks
        assert task.kind is TaskKind.SERIALIZER
        assert task.fn_id == "write_number"
        assert task.model_id == "write_number__model"
        assert task.from_module == "app.main"
        assert task.options == {}
        assert task.bundle is project.setup.bundle_registry.default_bundle

    def test_anonymous_deserializer(self, transform):
        """Test rewriting a call that is not bound to a name"""
        _, tasks = transform(
            {
                "app/main.py": """
                    from fake_churi import create_uc_deserializer

                    print(create_uc_deserializer(int))
                """
            }
        )

        assert final(tasks) == dedent(
            """\
            from .uc_lib import read_value
            from fake_churi import create_uc_deserializer
            uc_model = int
            print(read_value)"""
        )
        assert tasks.tasks[0].kind is TaskKind.DESERIALIZER

    def test_imports_follow_docstring_and_future_imports(self, transform):
        """Test that generated imports are placed after the module header"""
        _, tasks = transform(
            {
                "app/main.py": '''
                    """Serializers."""
                    from __future__ import annotations
                    from fake_churi import create_uc_serializer

                    write_number: object = create_uc_serializer(int)
                '''
            }
        )

        assert final(tasks).splitlines()[:4] == [
            "\"\"\"Serializers.\"\"\"",
            "from __future__ import annotations",
            "from .uc_lib import write_number as write_number_1",
            "from fake_churi import create_uc_serializer",
        ]
        assert "write_number: object = write_number_1" in final(tasks)

    def test_module_alias(self, transform):
        """Test recognizing factories accessed through a module alias"""
        _, tasks = transform(
            {
                "app/main.py": """
                    import fake_churi as churi


                    class User:
                        pass


                    read_user = churi.create_uc_deserializer(User)
                """
            }
        )

        assert "read_user__model = User" in final(tasks)
        assert "read_user = read_user_1" in final(tasks)
        assert "read_user = churi.create_uc_deserializer(read_user__model)" in build(tasks)

    def test_submodule_import(self, transform):
        """Test that importing a library submodule refers to the library"""
        project, tasks = transform(
            {
                "app/main.py": """
                    import fake_churi.compiler

                    write_number = fake_churi.create_uc_serializer(int)
                """
            }
        )

        assert project.setup.library.exports is not None
        assert [task.fn_id for task in tasks.tasks] == ["write_number"]
        assert "write_number = write_number_1" in final(tasks)

    def test_reexported_factory(self, transform):
        """Test recognizing factories re-exported by a project module"""
        _, tasks = transform(
            {
                "app/serialization.py": "from fake_churi import create_uc_serializer as serializer\n",
                "app/main.py": """
                    from .serialization import serializer

                    write_text = serializer(str)
                """,
            }
        )

        assert "write_text = write_text_1" in final(tasks)
        assert tasks.tasks[0].fn_id == "write_text"

    def test_call_before_library_import_is_kept(self, transform):
        """Test that calls preceding any library import are not recognized"""
        project, tasks = transform(
            {
                "app/main.py": """
                    write_early = fake_churi.create_uc_serializer(int)
                    import fake_churi
                """
            }
        )

        assert tasks.units == {}
        assert tasks.tasks == []
        assert project.setup.library.exports is not None

    def test_call_without_arguments_is_kept(self, transform):
        """Test that calls without a model are left untouched"""
        _, tasks = transform(
            {
                "app/main.py": """
                    from fake_churi import create_uc_serializer

                    broken = create_uc_serializer()
                """
            }
        )

        assert tasks.units == {}

    def test_unrelated_call_is_kept(self, transform):
        """Test that same-named functions of other modules are ignored"""
        _, tasks = transform(
            {
                "app/main.py": """
                    from fake_churi import create_uc_serializer


                    def create_uc_deserializer(model):
                        return model


                    read_number = create_uc_deserializer(int)
                """
            }
        )

        assert tasks.units == {}

    def test_several_calls(self, transform):
        """Test that each call gets its own function and model"""
        _, tasks = transform(
            {
                "app/main.py": """
                    from fake_churi import create_uc_deserializer, create_uc_serializer

                    read_number = create_uc_deserializer(int)
                    write_number = create_uc_serializer(int)
                    handlers = [create_uc_serializer(str), create_uc_serializer(bytes)]
                """
            }
        )

        assert [task.fn_id for task in tasks.tasks] == ["read_number", "write_number", "write_value", "write_value_1"]
        assert [task.model_id for task in tasks.tasks] == [
            "read_number__model",
            "write_number__model",
            "uc_model",
            "uc_model_1",
        ]
        assert "uc_model = str\nuc_model_1 = bytes\nhandlers = [write_value, write_value_1]" in final(tasks)

    def test_function_names_are_unique_across_modules(self, transform):
        """Test that generated function names never collide within a run"""
        _, tasks = transform(
            {
                "app/a.py": """
                    from fake_churi import create_uc_serializer

                    write_value = create_uc_serializer(int)
                """,
                "app/b.py": """
                    from fake_churi import create_uc_serializer

                    write_value = create_uc_serializer(int)
                """,
            }
        )

        assert [task.fn_id for task in tasks.tasks] == ["write_value", "write_value_1"]
        assert "from .uc_lib import write_value_1\n" in final(tasks, "app.b")
        assert "write_value = write_value_1" in final(tasks, "app.b")

    def test_declaration_names(self, transform):
        """Test function names derived from keyword arguments and dict keys"""
        _, tasks = transform(
            {
                "app/main.py": """
                    from fake_churi import create_uc_serializer

                    by_keyword = dict(write_int=create_uc_serializer(int))
                    by_key = {"write_str": create_uc_serializer(str), 1: create_uc_serializer(bytes)}
                """
            }
        )

        assert [task.fn_id for task in tasks.tasks] == ["write_int", "write_str", "write_value"]

    def test_nested_statement(self, transform):
        """Test hoisting the model before the enclosing module-level statement"""
        _, tasks = transform(
            {
                "app/main.py": """
                    from fake_churi import create_uc_serializer


                    def make_writer():
                        log = []
                        return create_uc_serializer(int)
                """
            }
        )

        source = final(tasks)
        assert "\nuc_model = int\n" in source
        assert source.index("uc_model = int") < source.index("def make_writer():")
        assert source.endswith("    log = []\n    return write_value")
        assert "    return create_uc_serializer(uc_model)" in build(tasks)

    def test_class_attribute(self, transform):
        """Test hoisting the model of a class attribute out of the class body"""
        _, tasks = transform(
            {
                "app/main.py": """
                    from fake_churi import create_uc_serializer


                    class Codec:
                        write = create_uc_serializer(int)
                """
            }
        )

        [task] = tasks.tasks
        assert task.fn_id == "write"
        assert task.model_id == "write__model"
        source = final(tasks)
        assert source.index("write__model = int") < source.index("class Codec:")
        assert source.endswith("    write = write_1")

    def test_local_factory_name_is_kept(self, transform):
        """Test that a local name shadowing a factory is not treated as the factory"""
        _, tasks = transform(
            {
                "app/main.py": """
                    from fake_churi import create_uc_serializer


                    def wrap(create_uc_serializer):
                        return create_uc_serializer(int)


                    def reimport():
                        from other import create_uc_serializer
                        return create_uc_serializer(int)


                    apply = lambda create_uc_serializer: create_uc_serializer(int)
                    writers = [create_uc_serializer(model) for create_uc_serializer, model in []]
                """
            }
        )

        assert tasks.units == {}
        assert tasks.tasks == []

    def test_global_name_is_not_local(self, transform):
        """Test that names declared global refer to module-level bindings"""
        _, tasks = transform(
            {
                "app/main.py": """
                    from fake_churi import create_uc_serializer

                    Model = int


                    def make_writer():
                        global Model
                        Model = str
                        return create_uc_serializer(Model)
                """
            }
        )

        assert [task.model_id for task in tasks.tasks] == ["uc_model"]
        assert "uc_model = Model\n" in final(tasks)

    @pytest.mark.parametrize(
        "source, name",
        [
            ("def make(model):\n    return create_uc_serializer(model)", "model"),
            ("def make():\n    Local = int\n    return create_uc_serializer([Local])", "Local"),
            ("class Codec:\n    Model = int\n    write = create_uc_serializer(Model)", "Model"),
            ("writers = [create_uc_serializer(model) for model in (int, str)]", "model"),
        ],
    )
    def test_model_referring_to_local_name(self, transform, source, name):
        """Test that models can not refer to names unbound at module level"""
        with pytest.raises(UcSourceError, match=f"refers to '{name}', which is not a module-level name"):
            transform({"app/main.py": "from fake_churi import create_uc_serializer\n" + source + "\n"})

    def test_nested_factory_calls(self, transform):
        """Test that models containing factory calls are rewritten inside out"""
        _, tasks = transform(
            {
                "app/main.py": """
                    from fake_churi import create_uc_serializer

                    write_list = create_uc_serializer([create_uc_serializer(int)])
                """
            }
        )

        assert [task.fn_id for task in tasks.tasks] == ["write_value", "write_list"]
        assert "uc_model = int\nwrite_list__model = [write_value]\nwrite_list = write_list_1" in final(tasks)
        assert "write_list__model = [create_uc_serializer(uc_model)]" in build(tasks)

    def test_options(self, transform):
        """Test that call-site options are resolved into the task"""
        _, tasks = transform(
            {
                "app/main.py": """
                    from fake_churi import create_uc_serializer

                    MODE = "compact"

                    write_number = create_uc_serializer(int, {"mode": MODE, "by_tokens": True})
                """
            }
        )

        assert tasks.tasks[0].options == {"mode": "compact", "by_tokens": True}

    def test_null_options_are_absent(self, transform):
        """Test that options set to None are left out of the task"""
        _, tasks = transform(
            {
                "app/main.py": """
                    from fake_churi import create_uc_serializer

                    MODE = None

                    write_number = create_uc_serializer(int, {"mode": MODE, "by_tokens": None, "strict": False})
                """
            }
        )

        assert tasks.tasks[0].options == {"strict": False}
        assert "write_number = create_uc_serializer(write_number__model, {'mode': MODE, 'by_tokens': True})" in build(
            tasks
        )

    def test_malformed_options(self, transform):
        """Test that options not passed as a literal are rejected"""
        with pytest.raises(UcSourceError, match="create_uc_serializer options have to be passed as dict literal"):
            transform(
                {
                    "app/main.py": """
                        from fake_churi import create_uc_serializer

                        OPTIONS = {"mode": "compact"}
                        write_number = create_uc_serializer(int, OPTIONS)
                    """
                }
            )

    def test_dist_outside_source_root(self, transform, uc_config):
        """Test that a distribution file outside the source root is rejected"""
        uc_config.dist = "../elsewhere/uc_lib.py"
        with pytest.raises(UcSourceError, match="is not a module within"):
            transform(
                {
                    "app/main.py": """
                        from fake_churi import create_uc_serializer

                        write_number = create_uc_serializer(int)
                    """
                }
            )

    def test_absolute_import_of_dist_in_other_package(self, transform, uc_config):
        """Test that distribution modules outside the unit's package are imported absolutely"""
        uc_config.dist = "generated/uc_lib.py"
        _, tasks = transform(
            {
                "app/main.py": """
                    from fake_churi import create_uc_serializer

                    write_number = create_uc_serializer(int)
                """
            }
        )

        assert final(tasks).startswith("from generated.uc_lib import write_number as write_number_1\n")

    def test_relative_import_from_subpackage(self, transform):
        """Test relative imports climbing to the distribution module's package"""
        _, tasks = transform(
            {
                "app/models/__init__.py": "",
                "app/models/user.py": """
                    from fake_churi import create_uc_serializer

                    write_user = create_uc_serializer(dict)
                """,
            }
        )

        assert final(tasks, "app.models.user").startswith("from ..uc_lib import write_user as write_user_1\n")


class TestBundleDeclarations:
    """Test cases for named bundles"""

    def test_bundle_option(self, transform):
        """Test emitting functions to a bundle selected by option"""
        project, tasks = transform(
            {
                "app/main.py": """
                    from fake_churi import create_uc_bundle, create_uc_serializer

                    my_bundle = create_uc_bundle({"dist": "custom_uc_lib.py"})
                    write_number = create_uc_serializer(int, {"bundle": my_bundle})
                """
            }
        )

        [task] = tasks.tasks
        assert task.bundle.dist_file == project.root.resolve() / "app" / "custom_uc_lib.py"
        assert task.options == {}
        assert "from .custom_uc_lib import write_number as write_number_1" in final(tasks)
        assert "my_bundle = create_uc_bundle({'dist': 'custom_uc_lib.py'})" in final(tasks)

    def test_bundle_shared_between_modules(self, transform):
        """Test that a bundle imported by another module is the same bundle"""
        project, tasks = transform(
            {
                "app/bundles.py": """
                    from fake_churi import create_uc_bundle

                    MyBundle = create_uc_bundle({})
                """,
                "app/main.py": """
                    from fake_churi import create_uc_serializer
                    from .bundles import MyBundle

                    write_a = create_uc_serializer(int, {"bundle": MyBundle})
                    write_b = create_uc_serializer(str, dict(bundle=MyBundle))
                """,
            }
        )

        first, second = tasks.tasks
        assert first.bundle is second.bundle
        assert first.bundle.dist_file == project.root.resolve() / "my_bundle_uc_lib.py"
        assert final(tasks).startswith(
            "from my_bundle_uc_lib import write_a as write_a_1\nfrom my_bundle_uc_lib import write_b as write_b_1\n"
        )
        assert project.setup.bundle_registry.bundles() == [first.bundle]

    def test_calls_nested_in_bundle_declaration(self, transform):
        """Test that factory calls within a declaration belong to the declared bundle"""
        project, tasks = transform(
            {
                "app/main.py": """
                    from fake_churi import create_uc_bundle, create_uc_serializer

                    nested = create_uc_bundle({"dist": "nested_uc_lib.py", "write_it": create_uc_serializer(int)})
                    write_other = create_uc_serializer(str)
                """
            }
        )

        nested, other = tasks.tasks
        assert nested.fn_id == "write_it"
        assert nested.bundle.dist_file.name == "nested_uc_lib.py"
        assert other.bundle is project.setup.bundle_registry.default_bundle
        assert (
            "write_it__model = int\n"
            "nested = create_uc_bundle({'dist': 'nested_uc_lib.py', 'write_it': write_it})" in final(tasks)
        )

    def test_bundle_without_options(self, transform):
        """Test declaring a bundle without an options literal"""
        project, tasks = transform(
            {
                "app/main.py": """
                    from fake_churi import create_uc_bundle, create_uc_serializer

                    extra = create_uc_bundle()
                    write_number = create_uc_serializer(int, {"bundle": extra})
                """
            }
        )

        [task] = tasks.tasks
        assert task.bundle.dist_file == project.root.resolve() / "extra_uc_lib.py"
        assert project.setup.bundle_registry.bundles() == [task.bundle]

    @pytest.mark.parametrize(
        "source",
        [
            "print(create_uc_bundle({}))",
            "first = second = create_uc_bundle({})",
            "def make():\n    local_bundle = create_uc_bundle({})",
            "def make():\n    local_bundle = create_uc_bundle()",
            "print(create_uc_bundle())",
        ],
    )
    def test_bundle_must_be_module_level_constant(self, transform, source):
        """Test that bundles not declared as module-level names are rejected"""
        with pytest.raises(UcSourceError, match="Bundle expected to be declared as module-level constant"):
            transform({"app/main.py": "from fake_churi import create_uc_bundle\n" + source + "\n"})
