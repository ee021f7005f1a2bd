from .partitioner import ColumnRangePartitioner, KeyBounds, PartitionSpec, partition

__all__ = ["ColumnRangePartitioner", "KeyBounds", "PartitionSpec", "partition"]
