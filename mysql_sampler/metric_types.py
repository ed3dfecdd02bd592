"""The table of raw MySQL keys we know how to publish.

Keys come from ``SHOW GLOBAL STATUS``, ``SHOW GLOBAL VARIABLES`` and
``SHOW SLAVE STATUS``, all merged into one raw sample.  Anything the server
reports that isn't listed here is ignored, so newer servers with more
counters don't break anything.

Status counters such as ``Queries`` only ever grow while the server is up;
these are ``RATE`` (per second over the time since the last run) or
``DELTA`` (growth since the last run).  Values like ``Threads_connected`` go
up and down and are reported as they are, as ``GAUGE``.

The "core" and "replication" groups are always collected; "extended",
"innodb" and "myisam" are opt-in, see the ``--extended_*`` options.

"""
from .definitions import CORE
from .definitions import DELTA
from .definitions import DerivedMetric
from .definitions import EXTENDED
from .definitions import GAUGE
from .definitions import group
from .definitions import INNODB
from .definitions import MYISAM
from .definitions import number
from .definitions import on_off
from .definitions import RATE
from .definitions import Registry
from .definitions import REPLICATION
from .definitions import string
from .definitions import yes_no


METRIC_SET_NAME = "MysqlSample"


core = group(
    CORE,
    ("Aborted_clients", "net.abortedClientsPerSecond", RATE),
    ("Aborted_connects", "net.abortedConnectsPerSecond", RATE),
    ("Bytes_received", "net.bytesReceivedPerSecond", RATE),
    ("Bytes_sent", "net.bytesSentPerSecond", RATE),
    (
        "Connection_errors_max_connections",
        "net.connectionErrorsMaxConnectionsPerSecond",
        RATE,
    ),
    ("Connections", "net.connectionsPerSecond", RATE),
    ("Max_used_connections", "net.maxUsedConnections", GAUGE),
    ("Threads_connected", "net.threadsConnected", GAUGE),
    ("Threads_running", "net.threadsRunning", GAUGE),
    ("Com_commit", "query.comCommitPerSecond", RATE),
    ("Com_delete", "query.comDeletePerSecond", RATE),
    ("Com_delete_multi", "query.comDeleteMultiPerSecond", RATE),
    ("Com_insert", "query.comInsertPerSecond", RATE),
    ("Com_insert_select", "query.comInsertSelectPerSecond", RATE),
    ("Com_replace_select", "query.comReplaceSelectPerSecond", RATE),
    ("Com_rollback", "query.comRollbackPerSecond", RATE),
    ("Com_select", "query.comSelectPerSecond", RATE),
    ("Com_update", "query.comUpdatePerSecond", RATE),
    ("Com_update_multi", "query.comUpdateMultiPerSecond", RATE),
    ("Prepared_stmt_count", "query.preparedStatements", GAUGE),
    ("Queries", "query.queriesPerSecond", RATE),
    ("Questions", "query.questionsPerSecond", RATE),
    ("Slow_queries", "query.slowQueriesPerSecond", RATE),
    ("Handler_rollback", "db.handlerRollbackPerSecond", RATE),
    ("Opened_tables", "db.openedTablesPerSecond", RATE),
    ("Open_files", "db.openFiles", GAUGE),
    ("Open_tables", "db.openTables", GAUGE),
    ("Qcache_free_memory", "db.qCacheFreeMemoryBytes", GAUGE),
    ("Qcache_not_cached", "db.qCacheNotCachedPerSecond", RATE),
    ("Table_locks_waited", "db.tablesLocksWaitedPerSecond", RATE),
    # variables
    ("read_only", "db.readOnly", GAUGE, on_off),
    ("version", "software.version", GAUGE, string),
    ("version_comment", "software.edition", GAUGE, string),
)

extended = group(
    EXTENDED,
    ("Created_tmp_disk_tables", "db.createdTmpDiskTablesPerSecond", RATE),
    ("Created_tmp_files", "db.createdTmpFilesPerSecond", RATE),
    ("Created_tmp_tables", "db.createdTmpTablesPerSecond", RATE),
    ("Handler_delete", "db.handlerDeletePerSecond", RATE),
    ("Handler_read_first", "db.handlerReadFirstPerSecond", RATE),
    ("Handler_read_key", "db.handlerReadKeyPerSecond", RATE),
    ("Handler_read_rnd", "db.handlerReadRndPerSecond", RATE),
    ("Handler_read_rnd_next", "db.handlerReadRndNextPerSecond", RATE),
    ("Handler_update", "db.handlerUpdatePerSecond", RATE),
    ("Handler_write", "db.handlerWritePerSecond", RATE),
    (
        "Max_execution_time_exceeded",
        "db.maxExecutionTimeExceededPerSecond",
        RATE,
    ),
    ("Qcache_hits", "db.qCacheHitsPerSecond", RATE),
    ("Qcache_inserts", "db.qCacheInsertsPerSecond", RATE),
    ("Qcache_lowmem_prunes", "db.qCacheLowMemPrunesPerSecond", RATE),
    ("Qcache_queries_in_cache", "db.qCacheQueriesInCache", GAUGE),
    ("Select_full_join", "db.selectFullJoinPerSecond", RATE),
    ("Select_full_range_join", "db.selectFullJoinRangePerSecond", RATE),
    ("Select_range", "db.selectRangePerSecond", RATE),
    ("Select_range_check", "db.selectRangeCheckPerSecond", RATE),
    ("Select_scan", "db.selectScanPerSecond", RATE),
    ("Sort_merge_passes", "db.sortMergePasses", DELTA),
    ("Sort_range", "db.sortRangePerSecond", RATE),
    ("Sort_rows", "db.sortRowsPerSecond", RATE),
    ("Sort_scan", "db.sortScanPerSecond", RATE),
    ("Table_open_cache_hits", "db.tableOpenCacheHitsPerSecond", RATE),
    ("Table_open_cache_misses", "db.tableOpenCacheMissesPerSecond", RATE),
    (
        "Table_open_cache_overflows",
        "db.tableOpenCacheOverflowsPerSecond",
        RATE,
    ),
    ("Threads_cached", "db.threadsCached", GAUGE),
    ("Threads_created", "db.threadsCreated", DELTA),
)

innodb = group(
    INNODB,
    ("Innodb_buffer_pool_bytes_data", "db.innodb.bufferPoolDataBytes", GAUGE),
    ("Innodb_buffer_pool_pages_data", "db.innodb.bufferPoolPagesData", GAUGE),
    ("Innodb_buffer_pool_pages_dirty", "db.innodb.bufferPoolPagesDirty", GAUGE),
    ("Innodb_buffer_pool_pages_free", "db.innodb.bufferPoolPagesFree", GAUGE),
    ("Innodb_buffer_pool_pages_total", "db.innodb.bufferPoolPagesTotal", GAUGE),
    (
        "Innodb_buffer_pool_pages_flushed",
        "db.innodb.bufferPoolPagesFlushedPerSecond",
        RATE,
    ),
    (
        "Innodb_buffer_pool_read_ahead",
        "db.innodb.bufferPoolReadAheadPerSecond",
        RATE,
    ),
    (
        "Innodb_buffer_pool_read_ahead_evicted",
        "db.innodb.bufferPoolReadAheadEvictedPerSecond",
        RATE,
    ),
    (
        "Innodb_buffer_pool_read_ahead_rnd",
        "db.innodb.bufferPoolReadAheadRndPerSecond",
        RATE,
    ),
    (
        "Innodb_buffer_pool_read_requests",
        "db.innodb.bufferPoolReadRequestsPerSecond",
        RATE,
    ),
    ("Innodb_buffer_pool_reads", "db.innodb.bufferPoolReadsPerSecond", RATE),
    (
        "Innodb_buffer_pool_wait_free",
        "db.innodb.bufferPoolWaitFreePerSecond",
        RATE,
    ),
    (
        "Innodb_buffer_pool_write_requests",
        "db.innodb.bufferPoolWriteRequestsPerSecond",
        RATE,
    ),
    ("Innodb_data_fsyncs", "db.innodb.dataFsyncsPerSecond", RATE),
    ("Innodb_data_pending_fsyncs", "db.innodb.dataPendingFsyncs", GAUGE),
    ("Innodb_data_pending_reads", "db.innodb.dataPendingReads", GAUGE),
    ("Innodb_data_pending_writes", "db.innodb.dataPendingWrites", GAUGE),
    ("Innodb_data_read", "db.innodb.dataReadBytesPerSecond", RATE),
    ("Innodb_data_reads", "db.innodb.dataReadsPerSecond", RATE),
    ("Innodb_data_writes", "db.innodb.dataWritesPerSecond", RATE),
    ("Innodb_data_written", "db.innodb.dataWrittenBytesPerSecond", RATE),
    ("Innodb_log_waits", "db.innodb.logWaitsPerSecond", RATE),
    (
        "Innodb_log_write_requests",
        "db.innodb.logWriteRequestsPerSecond",
        RATE,
    ),
    ("Innodb_log_writes", "db.innodb.logWritesPerSecond", RATE),
    ("Innodb_os_log_fsyncs", "db.innodb.osLogFsyncsPerSecond", RATE),
    ("Innodb_os_log_pending_fsyncs", "db.innodb.osLogPendingFsyncs", GAUGE),
    ("Innodb_os_log_pending_writes", "db.innodb.osLogPendingWrites", GAUGE),
    ("Innodb_os_log_written", "db.innodb.osLogWrittenBytesPerSecond", RATE),
    ("Innodb_pages_created", "db.innodb.pagesCreatedPerSecond", RATE),
    ("Innodb_pages_read", "db.innodb.pagesReadPerSecond", RATE),
    ("Innodb_pages_written", "db.innodb.pagesWrittenPerSecond", RATE),
    ("Innodb_row_lock_current_waits", "db.innodb.rowLockCurrentWaits", GAUGE),
    ("Innodb_row_lock_time", "db.innodb.rowLockTime", DELTA),
    ("Innodb_row_lock_time_avg", "db.innodb.rowLockTimeAvg", GAUGE),
    ("Innodb_row_lock_waits", "db.innodb.rowLockWaitsPerSecond", RATE),
    ("Innodb_rows_deleted", "db.innodb.rowsDeletedPerSecond", RATE),
    ("Innodb_rows_inserted", "db.innodb.rowsInsertedPerSecond", RATE),
    ("Innodb_rows_read", "db.innodb.rowsReadPerSecond", RATE),
    ("Innodb_rows_updated", "db.innodb.rowsUpdatedPerSecond", RATE),
)

myisam = group(
    MYISAM,
    ("Key_blocks_not_flushed", "db.myisam.keyBlocksNotFlushed", GAUGE),
    ("Key_blocks_unused", "db.myisam.keyCacheBlocksUnused", GAUGE),
    ("Key_blocks_used", "db.myisam.keyCacheBlocksUsed", GAUGE),
    ("Key_read_requests", "db.myisam.keyReadRequestsPerSecond", RATE),
    ("Key_reads", "db.myisam.keyReadsPerSecond", RATE),
    ("Key_write_requests", "db.myisam.keyWriteRequestsPerSecond", RATE),
    ("Key_writes", "db.myisam.keyWritesPerSecond", RATE),
)

# columns of SHOW SLAVE STATUS; only present on a replica.
replication = group(
    REPLICATION,
    ("Slave_IO_Running", "cluster.slaveIoRunning", GAUGE, yes_no),
    ("Slave_SQL_Running", "cluster.slaveSqlRunning", GAUGE, yes_no),
    ("Seconds_Behind_Master", "cluster.secondsBehindMaster", GAUGE),
    ("Last_IO_Errno", "cluster.lastIoErrno", GAUGE),
    ("Last_SQL_Errno", "cluster.lastSqlErrno", GAUGE),
    ("Relay_Log_Space", "cluster.relayLogSpaceBytes", GAUGE),
    ("Read_Master_Log_Pos", "cluster.readMasterLogPos", GAUGE),
    ("Exec_Master_Log_Pos", "cluster.execMasterLogPos", GAUGE),
    ("Master_Host", "cluster.masterHost", GAUGE, string),
)


def _ratio(numerator, denominator):
    if numerator is None or not denominator:
        return None
    return numerator / denominator


def _qcache_utilization(raw):
    free_blocks = number(raw.get("Qcache_free_blocks"))
    ratio = _ratio(free_blocks, number(raw.get("Qcache_total_blocks")))
    return None if ratio is None else 1 - ratio


def _qcache_hit_ratio(raw):
    hits = number(raw.get("Qcache_hits"))
    selects = number(raw.get("Com_select"))
    if hits is None or selects is None:
        return None
    return _ratio(hits, hits + selects)


def _thread_cache_miss_rate(raw):
    return _ratio(
        number(raw.get("Threads_created")), number(raw.get("Connections"))
    )


def _key_cache_utilization(raw):
    unused = number(raw.get("Key_blocks_unused"))
    block_size = number(raw.get("key_cache_block_size"))
    if unused is None or block_size is None:
        return None
    ratio = _ratio(unused * block_size, number(raw.get("key_buffer_size")))
    return None if ratio is None else 1 - ratio


def _node_type(raw):
    # a server answering SHOW SLAVE STATUS with a row is a replica
    if "Slave_IO_Running" in raw or "Slave_SQL_Running" in raw:
        return "slave"
    return "master"


derived = (
    DerivedMetric("db.qCacheUtilization", _qcache_utilization),
    DerivedMetric("db.qCacheHitRatio", _qcache_hit_ratio),
    DerivedMetric("db.threadCacheMissRate", _thread_cache_miss_rate),
    DerivedMetric("db.keyCacheUtilization", _key_cache_utilization, MYISAM),
    DerivedMetric("cluster.nodeType", _node_type),
)


REGISTRY = Registry(core + extended + innodb + myisam + replication, derived)
