"""Unit tests for package tree construction."""

import gc

import pytest

from apkanalyzer.core.exceptions import DuplicateClassError, InvalidClassNameError
from apkanalyzer.models.dex import (
    ClassSymbols,
    DexSymbols,
    DexSymbolSource,
    MemberKind,
    MemberReference,
    descriptor_to_java_type,
    java_member_signature,
)
from apkanalyzer.models.tree import Metric, NodeKind, PackageNode, PackageTree
from apkanalyzer.services.mapping import SymbolMap
from apkanalyzer.services.packages import (
    DuplicateClassPolicy,
    PackageTreeBuilder,
    build_package_tree,
    split_class_name,
)


def cls(name, methods=0, fields=0):
    return ClassSymbols(
        name=name,
        methods=tuple(f"m{i}()V" for i in range(methods)),
        fields=tuple(f"f{i}:I" for i in range(fields)),
    )


class TestPackageTreeBuilder:
    """Tests for merging DEX symbol sources into a tree."""

    def test_empty_input(self):
        """No input files give an empty root."""
        tree = build_package_tree([]).tree

        assert tree.root.name == "root"
        assert tree.root.children == {}
        assert tree.total_method_count() == 0
        assert tree.total_field_count() == 0

    def test_package_layout(self):
        """a.b.C1, a.b.C2 and a.d.C3 nest under a shared package a."""
        source = DexSymbols("classes.dex", [cls("a.b.C1", 2), cls("a.b.C2", 3), cls("a.d.C3", 4)])
        tree = build_package_tree([source]).tree

        assert list(tree.root.children) == ["a"]
        a = tree.find(["a"])
        assert list(a.children) == ["b", "d"]
        assert all(not node.is_class for node in (a, a.child("b"), a.child("d")))
        assert [node.qualified_name for node in tree.classes()] == ["a.b.C1", "a.b.C2", "a.d.C3"]
        assert a.method_count == 2 + 3 + 4
        assert a.class_count == 3

    def test_descriptor_names(self):
        source = DexSymbols("classes.dex", [cls("Lcom/example/Foo;", 1)])
        tree = build_package_tree([source]).tree

        node = tree.find("com.example.Foo")
        assert node is not None
        assert node.kind is NodeKind.CLASS

    def test_duplicate_first_wins(self):
        """The same class in two files yields one node and a warning."""
        first = DexSymbols("classes.dex", [cls("p.A", 2)])
        second = DexSymbols("classes2.dex", [cls("p.A", 5)])

        result = build_package_tree([first, second])

        node = result.tree.find("p.A")
        assert node.declared_method_count == 2
        assert node.dex_file == "classes.dex"
        assert result.tree.total_class_count() == 1
        assert len(result.warnings) == 1
        warning = result.warnings[0]
        assert (warning.kept_file, warning.duplicate_file) == ("classes.dex", "classes2.dex")

    def test_duplicate_last_wins(self):
        first = DexSymbols("classes.dex", [cls("p.A", 2)])
        second = DexSymbols("classes2.dex", [cls("p.A", 5)])

        result = build_package_tree([first, second], duplicate_policy=DuplicateClassPolicy.LAST_WINS)

        node = result.tree.find("p.A")
        assert node.declared_method_count == 5
        assert node.dex_file == "classes2.dex"
        assert result.tree.total_method_count() == 5
        assert len(result.warnings) == 1

    def test_duplicate_error(self):
        first = DexSymbols("classes.dex", [cls("p.A")])
        second = DexSymbols("classes2.dex", [cls("p.A")])

        with pytest.raises(DuplicateClassError) as exc_info:
            build_package_tree([first, second], duplicate_policy=DuplicateClassPolicy.ERROR)
        assert exc_info.value.file_name == "classes2.dex"

    def test_deobfuscation(self):
        """An obfuscated class is placed under its original package path."""
        symbol_map = SymbolMap()
        symbol_map.add_class_mapping("a.b.X", "com.example.Foo")
        source = DexSymbols("classes.dex", [cls("a.b.X", 1)])

        tree = build_package_tree([source], symbol_map=symbol_map).tree

        assert tree.find(["a"]) is None
        node = tree.find(["com", "example", "Foo"])
        assert node.is_class
        assert node.path == ["com", "example", "Foo"]

    def test_referenced_method_count(self):
        """Only recorded signatures count, not the declared ones."""
        symbol_map = SymbolMap()
        symbol_map.record_usage("a.b.C1", "m0()V")
        source = DexSymbols("classes.dex", [cls("a.b.C1", 5)])

        tree = build_package_tree([source], symbol_map=symbol_map).tree

        node = tree.find("a.b.C1")
        assert node.referenced_method_count == 1
        assert node.method_count == 5

    def test_references_recorded_from_sources(self):
        source = DexSymbols(
            "classes.dex",
            [cls("p.A", 3, 1)],
            [
                MemberReference("Lp/A;", "m0()V"),
                MemberReference("Lp/A;", "m1()V"),
                MemberReference("Lp/A;", "m1()V"),
                MemberReference("Lp/A;", "f0:I", MemberKind.FIELD),
            ],
        )
        symbol_map = SymbolMap()

        tree = PackageTreeBuilder(symbol_map).build([source]).tree

        node = tree.find("p.A")
        assert node.referenced_method_count == 2
        assert node.referenced_field_count == 1
        assert symbol_map.is_class_used("p.A")

    def test_references_not_recorded(self):
        source = DexSymbols("classes.dex", [cls("p.A", 3)], [MemberReference("Lp/A;", "m0()V")])

        tree = PackageTreeBuilder(record_references=False).build([source]).tree

        assert tree.find("p.A").referenced_method_count == 0

    def test_usage_under_original_and_bytecode_names(self):
        """A member referenced in bytecode and kept by seeds counts once."""
        symbol_map = SymbolMap()
        symbol_map.add_class_mapping("a.b.X", "com.example.Foo")
        symbol_map.add_member_mapping("a.b.X", "b", "run")
        symbol_map.add_member_mapping("a.b.X", "c", "stop")
        symbol_map.record_usage("com.example.Foo", "void run(int)")
        symbol_map.record_usage("com.example.Foo", "void stop()")
        source = DexSymbols(
            "classes.dex",
            [ClassSymbols("La/b/X;", ("b(I)V", "c()V", "d()V"))],
            [MemberReference("La/b/X;", "b(I)V")],
        )

        tree = build_package_tree([source], symbol_map=symbol_map).tree

        node = tree.find("com.example.Foo")
        assert node.referenced_method_count == 2
        assert node.declared_method_count == 3

    def test_seed_overloads_match_parameter_types(self):
        symbol_map = SymbolMap()
        symbol_map.add_class_mapping("a.b.X", "com.example.Foo")
        symbol_map.add_class_mapping("a.b.Y", "com.example.Bar")
        symbol_map.add_member_mapping("a.b.X", "b", "run")
        symbol_map.record_usage("com.example.Foo", "void run(com.example.Bar[])")
        symbol_map.record_usage("com.example.Foo", "Foo(int)")
        symbol_map.record_usage("com.example.Foo", "long total", MemberKind.FIELD)
        source = DexSymbols(
            "classes.dex",
            [ClassSymbols("La/b/X;", ("b(I)V", "b([La/b/Y;)V", "<init>(I)V", "<init>()V"), ("t:J",))],
        )

        node = build_package_tree([source], symbol_map=symbol_map).tree.find("com.example.Foo")

        assert node.referenced_method_count == 2
        assert node.referenced_field_count == 0

    def test_referenced_never_exceeds_declared(self):
        """References to members the class does not declare are not counted."""
        source = DexSymbols(
            "classes.dex",
            [cls("p.A", 1)],
            [
                MemberReference("Lp/A;", "m0()V"),
                MemberReference("Lp/A;", "toString()Ljava/lang/String;"),
                MemberReference("Lp/A;", "f9:I", MemberKind.FIELD),
            ],
        )

        node = build_package_tree([source]).tree.find("p.A")

        assert node.referenced_method_count == 1
        assert node.referenced_field_count == 0
        assert node.referenced_method_count <= node.declared_method_count

    def test_invalid_class_names_collected_per_file(self):
        source = DexSymbols("classes.dex", [cls("p..A"), cls("p.B", 1), cls("")])

        result = build_package_tree([source])

        assert result.has_errors
        assert result.error_count == 2
        assert [e.class_name for e in result.errors["classes.dex"]] == ["p..A", ""]
        assert result.tree.total_class_count() == 1

    def test_class_package_collision(self):
        source = DexSymbols("classes.dex", [cls("p.A"), cls("p.A.Inner")])

        result = build_package_tree([source])

        assert result.error_count == 1
        assert result.tree.find("p.A").is_class

    def test_end_to_end(self):
        """Two files: p.A (2), p.B (1) and q.C (3)."""
        first = DexSymbols("classes.dex", [cls("p.A", 2), cls("p.B", 1)])
        second = DexSymbols("classes2.dex", [cls("q.C", 3)])

        tree = build_package_tree([first, second]).tree

        assert tree.total_method_count() == 6
        assert tree.find(["p"]).method_count == 3
        node = tree.find(["q", "C"])
        assert node.kind is NodeKind.CLASS
        assert node.declared_method_count == 3

    def test_sources_satisfy_protocol(self):
        assert isinstance(DexSymbols("classes.dex"), DexSymbolSource)


class TestPackageTree:
    """Tests for tree queries."""

    @pytest.fixture
    def tree(self):
        source = DexSymbols(
            "classes.dex",
            [cls("x.Small", 1, 5), cls("y.Big", 10), cls("z.Big", 10, 1), cls("w.Mid", 4)],
        )
        return build_package_tree([source]).tree

    def test_largest_children(self, tree):
        names = [node.name for node in tree.largest_children()]
        assert names == ["y", "z", "w", "x"]

    def test_largest_children_by_field_count(self, tree):
        names = [node.name for node in tree.largest_children(by=Metric.FIELD_COUNT, limit=2)]
        assert names == ["x", "z"]

    def test_largest_children_is_lazy(self, tree):
        ranking = tree.largest_children(limit=1)
        assert next(ranking).name == "y"
        with pytest.raises(StopIteration):
            next(ranking)

    def test_find_missing(self, tree):
        assert tree.find("nope") is None
        assert tree.find([]) is tree.root

    def test_to_summary_depth(self, tree):
        summary = tree.to_summary(max_depth=1)

        assert summary.name == "root"
        assert summary.method_count == 25
        assert [child.name for child in summary.children] == ["x", "y", "z", "w"]
        assert all(child.children == [] for child in summary.children)

    def test_parent_is_weak(self):
        root = PackageNode("root")
        child = root.add_child(PackageNode("a"))
        assert child.parent is root

        del root
        gc.collect()
        assert child.parent is None

    def test_add_child_never_replaces(self):
        root = PackageNode("root")
        root.add_child(PackageNode("a"))
        with pytest.raises(KeyError):
            root.add_child(PackageNode("a"))

    def test_roll_up_is_bottom_up(self):
        tree = PackageTree()
        package = tree.root.add_child(PackageNode("p"))
        package.add_child(PackageNode("A", NodeKind.CLASS, declared_method_count=2, declared_field_count=1))
        package.add_child(PackageNode("B", NodeKind.CLASS, declared_method_count=3))

        tree.roll_up()

        assert package.method_count == 5
        assert package.field_count == 1
        assert tree.total_class_count() == 2


class TestSplitClassName:
    def test_split(self):
        assert split_class_name("com.example.Foo") == ["com", "example", "Foo"]
        assert split_class_name("Foo") == ["Foo"]

    @pytest.mark.parametrize("name", ["", "a..B", ".A", "A."])
    def test_invalid(self, name):
        with pytest.raises(InvalidClassNameError):
            split_class_name(name, "classes.dex")


class TestSourceSignatures:
    """Tests for converting DEX signatures to the form used by ProGuard files."""

    @pytest.mark.parametrize(
        ("signature", "expected"),
        [
            ("run(I)V", "void run(int)"),
            ("run()V", "void run()"),
            ("get(J[Ljava/lang/String;Z)[[B", "byte[][] get(long,java.lang.String[],boolean)"),
            ("count:I", "int count"),
            ("owner:Lcom/example/Foo;", "com.example.Foo owner"),
        ],
    )
    def test_java_member_signature(self, signature, expected):
        assert java_member_signature(signature) == expected

    def test_rename_and_resolve(self):
        names = {"a.b": "com.example.Bar"}
        signature = java_member_signature("c(La/b;)La/b;", "copy", lambda name: names.get(name, name))
        assert signature == "com.example.Bar copy(com.example.Bar)"

    def test_descriptor_to_java_type(self):
        assert descriptor_to_java_type("[[D") == "double[][]"
        assert descriptor_to_java_type("Lp/A;") == "p.A"
