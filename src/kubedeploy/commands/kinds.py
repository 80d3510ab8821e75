from rich.console import Console
from rich.table import Table

from kubedeploy.reconciler.dispatch import ReconcilerRegistry

from . import app


@app.command()
def kinds() -> None:
    """
    List the kinds of Kubernetes objects that can be applied.
    """

    table = Table()
    table.add_column("API version", style="cyan")
    table.add_column("Kind")
    table.add_column("Scope")

    registry = ReconcilerRegistry.default()
    for kind in registry:
        table.add_row(kind.api_version, kind.kind, "Namespaced" if registry[kind].namespaced else "Cluster")

    Console().print(table)
