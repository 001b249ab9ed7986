# kubescore

`kubescore` reads Kubernetes object definitions written in YAML and grades
them against a set of checks. Every scored object gets a list of check
results with comments explaining what is wrong. Results can be rendered for
people, for CI logs, as JSON, or as a SARIF 2.1.0 log.

## Installation

```
pip install kubescore
```

To run the test suite, install the `test` extra:

```
pip install "kubescore[test]"
```

## Command line

Installing the package provides the `kube-score` command:

```
kube-score score deployment.yaml statefulset.yaml
kube-score score -o ci manifests.yaml
cat manifests.yaml | kube-score score -
kube-score list
kube-score version
kube-score help
```

When the program is installed under the name `kubectl-score`, it runs as a
kubectl plugin: `kubectl score file.yaml` is the same as
`kubectl score score file.yaml`.

Flags of `score`:

| Flag | Meaning |
| --- | --- |
| `-o`, `--output-format` | `human` (default), `json`, `ci` or `sarif` |
| `--output-version` | `v1` or `v2` for `json` (default `v2`); `v1` for `human` and `ci` |
| `--color` | `auto` (default), `always` or `never` |
| `-v`, `--verbose` | repeat for more output: OK checks from 1, skipped checks from 2 |
| `--exit-one-on-warning` | also exit with 1 when a warning is found |
| `--ignore-test ID` | do not run a check; repeatable, comma separated values allowed |
| `--enable-optional-test ID` | run an optional check; repeatable |
| `--all-default-optional` | enable every optional check (not together with `--ignore-test`) |
| `--disable-ignore-checks-annotations` | ignore `kube-score/ignore` annotations |
| `--disable-optional-checks-annotations` | ignore `kube-score/enable` annotations |
| `--kubernetes-version` | `vMAJOR.MINOR`, default `v1.18` |
| `--ignore-container-cpu-limit`, `--ignore-container-memory-limit` | accepted and stored in the configuration |

`score` exits with 1 when any check is graded critical, and 0 otherwise.
`list` prints a CSV line per check: ID, target type, description and
`default` or `optional`.

With `--color auto`, colour is used on GitHub Actions, never when `NO_COLOR`
is set or `TERM=dumb`, and otherwise only when standard output is a
terminal.

Objects can carry the annotations `kube-score/ignore` and `kube-score/enable`
holding comma separated check IDs to skip or to enable for that object.

## Checks

Every check has a name and an ID derived from it: lower case, spaces
replaced by dashes.

```python
from kubescore.checks import machine_friendly_name

assert machine_friendly_name("Deployment has host PodAntiAffinity") == (
    "deployment-has-host-podantiaffinity"
)
```

The checks in `kubescore.apps`:

* `deployment-has-host-podantiaffinity`, `statefulset-has-host-podantiaffinity` –
  warns when a workload with two or more replicas (or none set) has no
  podAntiAffinity term on a host, zone or region topology key that selects
  its own pods.
* `deployment-targeted-by-hpa-does-not-have-replicas-configured` – critical
  when a HorizontalPodAutoscaler targets the Deployment and `spec.replicas`
  is set; skipped when no HPA targets it.
* `statefulset-has-servicename` – critical unless a headless Service
  (`clusterIP: None`) of that name in the same namespace selects the pods.
* `deployment-pod-selector-labels-match-template-metadata-labels`,
  `statefulset-pod-selector-labels-match-template-metadata-labels` –
  critical when `spec.selector` is invalid or does not select
  `spec.template.metadata.labels`.

`kubescore.apps.label_selector_matches(selector, labels)` evaluates a
LabelSelector with `matchLabels` and `matchExpressions` (`In`, `NotIn`,
`Exists`, `DoesNotExist`) and raises `ValueError` for an invalid one.

`kubescore.checks.Checks` is the registry: `register(target_type, name,
comment, fn, optional)`, `all()` and `for_target(target_type)`. Checks whose
ID is in `Configuration.ignored_tests` are listed by `all()` but not returned
by `for_target()`.

## Using the library

```python
from kubescore.config import Configuration, parse_semver
from kubescore.parser import NamedSource, Parser

config = Configuration(
    all_files=[NamedSource(name="app.yaml", content=open("app.yaml").read())],
    kubernetes_version=parse_semver("v1.18"),
)
objects = Parser().parse_files(config)
for deployment in objects.deployments:
    print(deployment.object_meta().name, deployment.location.line)
```

`Parser.parse_files` raises `kubescore.parser.ParseError` when a document is
not valid YAML or a known field has the wrong type.

Files may hold many documents separated by `---` lines; `v1` `List` objects
are expanded into their items. Each object's `FileLocation` holds the file
name and the line its document starts on. A document starting with a Helm
style `# Source: path` comment is reported under that path, at line 1.

Recognised kinds, in `kubescore.objects`: `Pod`, `Service`,
`NetworkPolicy`, `Ingress` (extensions/v1beta1, networking.k8s.io/v1beta1
and v1; `rules()` returns v1 form), `HorizontalPodAutoscaler`
(autoscaling/v1, v2beta1, v2beta2), `PodDisruptionBudget` (policy/v1beta1
and v1), `CronJob` (batch/v1beta1 and v1) and `Workload` for Deployments,
StatefulSets, DaemonSets and Jobs. Other kinds are skipped.

`kubescore.config.parse_semver` accepts `"v1.18"` or `"1.18"` and raises
`InvalidSemverError` otherwise; `Semver.less_than` compares versions.

## Output

The renderers take a mapping of keys to `kubescore.domain.ScoredObject` and
return a string:

* `kubescore.renderers.human.render_human(scorecard, verbose, term_width, use_colors)`
* `kubescore.renderers.ci.render_ci(scorecard)` – `[GRADE] name/namespace apiVersion/kind: (path) summary`
* `kubescore.renderers.json_v2.render_json(scorecard)`
* `kubescore.renderers.sarif_output.render_sarif(scorecard)` – warnings and
  critical findings only, built with the model in `kubescore.sarif`.

Grades (`kubescore.domain.Grade`) are `CRITICAL` (1), `WARNING` (5),
`ALMOST_OK` (7) and `ALL_OK` (10, printed `OK`).

## What it does not do

Only Deployments and StatefulSets of `apps/v1` are scored, and only by the
checks listed above. Pods, containers, Services, NetworkPolicies, Ingresses,
CronJobs, PodDisruptionBudgets and HorizontalPodAutoscalers are parsed but
have no checks of their own: there are no checks for resource limits,
probes, images, security contexts or network policies. The
`--ignore-container-cpu-limit`, `--ignore-container-memory-limit` and
`--kubernetes-version` settings are accepted but no check uses them.