"""Options for local activities.

Most users will use :py:class:`options.LocalActivityOptions` and its builder,
obtained via :py:meth:`options.LocalActivityOptions.new_builder`.
"""

__version__ = "1.0.0"
