"""Output parsing: line classification, aggregation, test report reconciliation and error classification"""
