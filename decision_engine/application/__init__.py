"""Application layer: advisory ports, resilience gateway and the decision facade."""
