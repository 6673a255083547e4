import math
from collections import defaultdict

CONTENT_TYPE = 'text/plain; version=0.0.4; charset=utf-8'


def format_value(val):
    try:
        float_val = float(val)
    except (ValueError, TypeError):
        return "0"
    if math.isnan(float_val):
        return "NaN"
    if math.isinf(float_val):
        return "+Inf" if float_val > 0 else "-Inf"
    # Whole numbers print without a trailing ".0"; everything else uses the
    # shortest repr that round-trips to the same float.
    if float_val.is_integer() and abs(float_val) < 1e15:
        return str(int(float_val))
    return repr(float_val)


def escape_help(text):
    return text.replace('\\', '\\\\').replace('\n', '\\n')


def escape_label_value(value):
    return str(value).replace('\\', '\\\\').replace('"', '\\"').replace('\n', '\\n')


def format_sample(name, labels, value):
    if labels:
        label_str = ','.join(f'{k}="{escape_label_value(v)}"' for k, v in labels)
        return f"{name}{{{label_str}}} {format_value(value)}"
    return f"{name} {format_value(value)}"


class SnapshotEmitter:
    """Renders the registry in the Prometheus text exposition format.

    render() never scrapes; it only reads the values already recorded.
    """

    def __init__(self, registry, lock):
        self.registry = registry
        self.lock = lock

    def render(self):
        # Read descriptors and values as one critical section so no target
        # is observed half-written.
        with self.lock:
            descriptors = self.registry.describe()
            samples = self.registry.snapshot()

        by_name = defaultdict(list)
        for sample in samples:
            by_name[sample.name].append(sample)

        lines = []
        for desc in sorted(descriptors, key=lambda d: d.name):
            lines.append(f"# HELP {desc.name} {escape_help(desc.help)}")
            lines.append(f"# TYPE {desc.name} {desc.type}")
            # Sort samples by label values for a stable output order
            for sample in sorted(by_name[desc.name], key=lambda s: s.labels):
                lines.append(format_sample(sample.name, sample.labels, sample.value))
        return ("\n".join(lines) + "\n").encode('utf-8')
