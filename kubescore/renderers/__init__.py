"""Human, CI, JSON and SARIF renderings of a scorecard."""