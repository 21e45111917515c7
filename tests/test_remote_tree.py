"""Tests for the cached remote node tree."""

from camera_uploader.remote import RemoteNode, RemoteNodeTree, NodeType


def folder(node_id, name, parent_id="root"):
    return RemoteNode(node_id=node_id, name=name, node_type=NodeType.FOLDER, parent_id=parent_id)


def file(node_id, name, fingerprint, parent_id="root"):
    return RemoteNode(
        node_id=node_id,
        name=name,
        node_type=NodeType.FILE,
        parent_id=parent_id,
        fingerprint=fingerprint,
        size=10
    )


def build_tree():
    tree = RemoteNodeTree()
    tree.set_root(RemoteNode(node_id="root", name="My Drive", node_type=NodeType.FOLDER))
    tree.add(folder("f1", "Camera Uploads"))
    tree.add(folder("f2", "Documents"))
    tree.add(file("a", "a.jpg", "fp-a", parent_id="f1"))
    tree.add(file("b", "b.jpg", "fp-b", parent_id="f2"))
    return tree


class TestRemoteNodeTree:

    def test_children_of_root(self):
        tree = build_tree()

        names = sorted(node.name for node in tree.children(tree.root))
        assert names == ["Camera Uploads", "Documents"]

    def test_children_of_folder(self):
        tree = build_tree()

        assert [node.node_id for node in tree.children(tree.get("f1"))] == ["a"]

    def test_fingerprint_lookup_is_account_wide(self):
        tree = build_tree()

        assert tree.find_by_fingerprint("fp-b").node_id == "b"
        assert tree.find_by_fingerprint("fp-a").parent_id == "f1"
        assert tree.find_by_fingerprint("unknown") is None

    def test_replacing_a_node_updates_indexes(self):
        tree = build_tree()
        tree.add(file("a", "a.jpg", "fp-a2", parent_id="f2"))

        assert tree.find_by_fingerprint("fp-a") is None
        assert tree.find_by_fingerprint("fp-a2").parent_id == "f2"
        assert tree.children(tree.get("f1")) == []
        assert len(tree) == 5

    def test_remove(self):
        tree = build_tree()
        tree.remove("b")

        assert "b" not in tree
        assert tree.find_by_fingerprint("fp-b") is None
        assert tree.children(tree.get("f2")) == []

    def test_clear(self):
        tree = build_tree()
        tree.clear()

        assert tree.root is None
        assert len(tree) == 0

    def test_folder_flag(self):
        assert folder("x", "X").is_folder
        assert not file("y", "y.jpg", "fp").is_folder
