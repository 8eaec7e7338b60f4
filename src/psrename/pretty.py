class PrettyTree:
    """An abstract class for pretty-printing tree-like structures."""

    def node_text(self) -> str:
        """Returns a single-line string representing a tree node."""
        ...

    def children(self) -> list["PrettyTree"]:
        """Returns a list of child nodes."""
        ...

    def __repr__(self):
        lines = [self.node_text()]

        # Explicit stack of (node, branch prefix, is last sibling) so that deeply
        # nested scripts do not hit the recursion limit.
        stack = [
            (child, "", i == 0)
            for i, child in enumerate(reversed(self.children()))
        ]

        while stack:
            node, branches, last_child = stack.pop()
            fork = "`-- " if last_child else "|-- "
            lines.append(f"{branches}{fork}{node.node_text()}")

            next_branches = branches + (".   " if last_child else "|   ")
            children = node.children()
            stack.extend(
                (child, next_branches, i == 0)
                for i, child in enumerate(reversed(children))
            )

        return "\n".join(lines)
