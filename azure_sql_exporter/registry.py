"""In-memory gauge registry.

The registry does not lock. Callers that write from several threads must
hold a shared lock around set() calls and around snapshot() reads (see
AzureSQLExporter).
"""
from collections import namedtuple

from azure_sql_exporter import NAMESPACE

MetricDescriptor = namedtuple('MetricDescriptor', ['name', 'help', 'type', 'label_names'])
Sample = namedtuple('Sample', ['name', 'labels', 'value'])


class GaugeFamily:
    """A named gauge with a fixed set of label names.

    An unlabeled family always holds exactly one series, starting at 0.
    A labeled family holds one series per label combination ever set.
    """

    def __init__(self, name, help_text, label_names=()):
        self.name = name
        self.help = help_text
        self.label_names = tuple(label_names)
        self.values = {}
        if not self.label_names:
            self.values[()] = 0.0

    def descriptor(self):
        return MetricDescriptor(self.name, self.help, 'gauge', self.label_names)

    def __repr__(self):
        return f"GaugeFamily({self.name!r}, labels={self.label_names!r})"


class MetricRegistry:
    def __init__(self, namespace=NAMESPACE):
        self.namespace = namespace
        self._families = {}

    def full_name(self, metric_name):
        return f"{self.namespace}_{metric_name}" if self.namespace else metric_name

    def register(self, metric_name, help_text, label_names=()):
        """
        Declares a gauge family. Registering the same name again returns the
        existing family. Call at startup only, never while scraping.
        """
        name = self.full_name(metric_name)
        family = self._families.get(name)
        if family is None:
            family = GaugeFamily(name, help_text, label_names)
            self._families[name] = family
        return family

    def set(self, family, label_values, value):
        """Overwrites the current value of family for label_values."""
        label_values = tuple(str(v) for v in label_values)
        if len(label_values) != len(family.label_names):
            raise ValueError(
                f"{family.name} expects labels {family.label_names}, got {label_values}"
            )
        family.values[label_values] = float(value)

    def get(self, family, label_values=()):
        """
        Current value for label_values, or None when the series was never set.
        For inspection only: it does not take the exporter lock, so a read can
        interleave with a concurrent collect().
        """
        return family.values.get(tuple(str(v) for v in label_values))

    def describe(self):
        return [family.descriptor() for family in self._families.values()]

    def snapshot(self):
        """
        Returns a list of Sample(name, labels, value) for every series, where
        labels is a tuple of (label_name, label_value) pairs in declared order.
        """
        samples = []
        for family in self._families.values():
            for label_values, value in family.values.items():
                labels = tuple(zip(family.label_names, label_values))
                samples.append(Sample(family.name, labels, value))
        return samples
