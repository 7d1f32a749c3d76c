import numpy as np
import pandas as pd

from mutation_context_analysis import HierarchyReference, run_survival_selection
from mutation_context_analysis.tree.reference import sbs96_leaf_features


def main():
    """
    A small, self-contained example of the full selection pipeline.
    """
    print("--- Starting Selection Pipeline ---")

    # 1. --- Data Generation ---
    rng = np.random.default_rng(42)
    leaves = sbs96_leaf_features()
    rates = np.full(len(leaves), 20.0)
    # an APOBEC-like excess in TpCpW contexts
    for i, leaf in enumerate(leaves):
        if leaf.startswith("T[C>T]") and leaf[-1] in "AT":
            rates[i] *= 6
    data = pd.DataFrame(
        rng.poisson(rates, size=(30, len(leaves))),
        index=[f"Sample_{j}" for j in range(30)],
        columns=leaves,
    )
    print(
        f"\nStep 1: Simulated counts for {data.shape[0]} samples over {data.shape[1]} contexts."
    )

    # 2. HierarchyReference.sbs96()
    reference = HierarchyReference.sbs96()
    print("Step 2: Built the reference hierarchy with a uniform background.")

    # 3. run_survival_selection()
    result = run_survival_selection(data, reference, p_threshold=0.05)
    print("Step 3: Tested every feature and reduced to survival features.")

    # --- Display Results ---
    print("\n--- Selection Complete ---")
    print(f"Seeded classes:    {result.seeded}")
    print(f"Propagated:        {result.propagated}")
    print(f"Pruned:            {result.pruned}")
    print(f"Survival features: {sorted(result.features)}")


if __name__ == "__main__":
    main()
