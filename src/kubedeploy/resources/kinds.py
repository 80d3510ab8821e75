"""
The Kubernetes kinds that kubedeploy knows how to apply.
"""

from kubedeploy.resources import KindTag

NAMESPACE = KindTag("v1", "Namespace")
SERVICE = KindTag("v1", "Service")
POD = KindTag("v1", "Pod")
CONFIG_MAP = KindTag("v1", "ConfigMap")
SECRET = KindTag("v1", "Secret")
REPLICATION_CONTROLLER = KindTag("v1", "ReplicationController")
SERVICE_ACCOUNT = KindTag("v1", "ServiceAccount")

REPLICA_SET = KindTag("apps/v1", "ReplicaSet")
DEPLOYMENT = KindTag("apps/v1", "Deployment")
DAEMON_SET = KindTag("apps/v1", "DaemonSet")
STATEFUL_SET = KindTag("apps/v1", "StatefulSet")

JOB = KindTag("batch/v1", "Job")

EXTENSIONS_INGRESS = KindTag("extensions/v1beta1", "Ingress")
EXTENSIONS_DAEMON_SET = KindTag("extensions/v1beta1", "DaemonSet")
EXTENSIONS_REPLICA_SET = KindTag("extensions/v1beta1", "ReplicaSet")
EXTENSIONS_DEPLOYMENT = KindTag("extensions/v1beta1", "Deployment")
BETA_CRON_JOB = KindTag("batch/v1beta1", "CronJob")

LIST = KindTag("v1", "List")
""" Not an object kind; a `List` document wraps other manifests in its `items`. """

STABLE_KINDS = (
    NAMESPACE,
    SERVICE,
    POD,
    CONFIG_MAP,
    SECRET,
    REPLICATION_CONTROLLER,
    REPLICA_SET,
    DEPLOYMENT,
    DAEMON_SET,
    STATEFUL_SET,
    JOB,
)

BETA_KINDS = (
    EXTENSIONS_INGRESS,
    EXTENSIONS_DAEMON_SET,
    EXTENSIONS_REPLICA_SET,
    BETA_CRON_JOB,
    EXTENSIONS_DEPLOYMENT,
)

CLUSTER_SCOPED_KINDS = frozenset({NAMESPACE})

REGISTERED_KINDS = STABLE_KINDS + BETA_KINDS
""" The kinds that the default reconciler registry handles, in registration order. """
