"""Click option helpers for selecting exactly one action."""
import click


def _flag(name: str) -> str:
    return "--" + name.replace("_", "-")


def require_one_of(params: dict, names: list[str]) -> str:
    """Return the single action flag that was set.

    Args:
        params: Parsed command parameters.
        names: Parameter names of the action flags.

    Raises:
        click.UsageError: If no action flag was set.
    """
    for name in names:
        if params.get(name):
            return name
    flags = ", ".join(_flag(n) for n in names)
    raise click.UsageError(f"One of {flags} must be specified")


class MutuallyExclusiveOption(click.Option):
    """Click flag that may not be combined with the listed other flags."""

    def __init__(self, *args, **kwargs):
        """Initialize with exclusive_with naming the conflicting options."""
        self.exclusive_with = kwargs.pop("exclusive_with", [])
        super().__init__(*args, **kwargs)

    def handle_parse_result(self, ctx, opts, args):
        """Raise UsageError when a conflicting option was also given."""
        if opts.get(self.name):
            for other in self.exclusive_with:
                if opts.get(other):
                    raise click.UsageError(
                        f"Options {_flag(self.name)} and {_flag(other)} are mutually exclusive"
                    )
        return super().handle_parse_result(ctx, opts, args)
